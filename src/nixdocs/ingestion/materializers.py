"""Invocations of nix tooling that turn nixpkgs into consumable documents."""

from __future__ import annotations

import logging
import os
import subprocess
from enum import Enum
from pathlib import Path
from typing import Mapping, Sequence

from nixdocs.errors import ExternalToolError

LOGGER = logging.getLogger(__name__)


class OptionsFlavor(str, Enum):
    NIXOS = "nixos"
    HOME_MANAGER = "hm"
    NIX_DARWIN = "nd"


_NIXOS_OPTIONS_EXPR = (
    "with import <nixpkgs> {}; "
    'let eval = import (pkgs.path + "/nixos/lib/eval-config.nix") { modules = []; }; '
    "opts = (nixosOptionsDoc { options = eval.options; }).optionsJSON; "
    'in runCommandLocal "options.json" { inherit opts; } '
    '"cp $opts/share/doc/nixos/options.json $out"'
)

_HOME_MANAGER_OPTIONS_EXPR = """{ pkgs ? import <nixpkgs> {} }:
let
  hmargs = { pkgs = pkgs; lib = import (<home-manager/modules/lib/stdlib-extended.nix>) pkgs.lib; };
  docs = import (<home-manager/doc>) hmargs;
in (if builtins.isFunction docs then docs hmargs else docs).options.json
"""

_NIX_DARWIN_OPTIONS_EXPR = (
    "with import <nixpkgs> {}; "
    "let eval = import <darwin/eval-config.nix> { inherit lib; modules = []; }; "
    "opts = (nixosOptionsDoc { options = eval.options; }).optionsJSON; "
    'in runCommandLocal "options.json" { inherit opts; } '
    '"cp $opts/share/doc/nixos/options.json $out"'
)

_NIXPKGS_TREE_EXPR = """
let
  pkgs = import <nixpkgs> { };
  f = with builtins; v: (mapAttrs
    (name: value:
      if (tryEval value).success
        && ! (tryEval (pkgs.lib.isDerivation value)).value
        && isAttrs value
      then mapAttrs (_: _: {}) value
      else {}
    )
    v
  );
in
(f (pkgs // { pkgs = {}; lib = {}; })) // { lib = f pkgs.lib; }
"""

_PERMISSIVE_ENV = {
    "NIXPKGS_ALLOW_UNFREE": "1",
    "NIXPKGS_ALLOW_BROKEN": "1",
    "NIXPKGS_ALLOW_INSECURE": "1",
}


def run_tool(command: Sequence[str], *, env: Mapping[str, str] | None = None) -> str:
    """Run an external command to completion and return its stdout.

    Raises ``ExternalToolError`` when the binary is missing or exits non-zero.
    """
    LOGGER.debug("Running %s", " ".join(command))
    full_env = {**os.environ, **env} if env else None
    try:
        completed = subprocess.run(
            list(command),
            capture_output=True,
            text=True,
            env=full_env,
            check=False,
        )
    except OSError as exc:
        raise ExternalToolError(command, str(exc)) from exc

    if completed.returncode != 0:
        stderr = completed.stderr.strip()
        raise ExternalToolError(
            command, stderr or f"exited with status {completed.returncode}"
        )
    return completed.stdout


def _output_path(stdout: str) -> Path:
    path = stdout.strip()
    if not path:
        raise ExternalToolError(["nix-build"], "no output path printed")
    return Path(path)


def nixpkgs_root() -> Path:
    """Location of the ``<nixpkgs>`` channel on this machine."""
    return _output_path(run_tool(["nix-instantiate", "--eval", "--strict", "-E", "<nixpkgs>"]))


def options_json_path(flavor: OptionsFlavor) -> Path:
    """Build the ``options.json`` document for one module system."""
    if flavor is OptionsFlavor.NIXOS:
        stdout = run_tool(
            ["nix-build", "--no-out-link", "-E", _NIXOS_OPTIONS_EXPR], env=_PERMISSIVE_ENV
        )
        return _output_path(stdout)
    if flavor is OptionsFlavor.HOME_MANAGER:
        stdout = run_tool(["nix-build", "--no-out-link", "-E", _HOME_MANAGER_OPTIONS_EXPR])
        return _output_path(stdout) / "share/doc/home-manager/options.json"
    stdout = run_tool(
        ["nix-build", "--no-out-link", "-E", _NIX_DARWIN_OPTIONS_EXPR], env=_PERMISSIVE_ENV
    )
    return _output_path(stdout)


def function_docs_dir() -> Path:
    """Build the nixpkgs manual's function reference and return its XML directory."""
    stdout = run_tool(["nix-build", "--no-out-link", "<nixpkgs/doc/doc-support/default.nix>"])
    return _output_path(stdout) / "function-docs"


def nixpkgs_tree_json() -> str:
    """Evaluate the top two levels of the package set as JSON."""
    return run_tool(
        ["nix-instantiate", "--json", "--strict", "--eval", "-E", _NIXPKGS_TREE_EXPR]
    )
