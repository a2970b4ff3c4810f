"""nixdocs - search documentation across nixpkgs, NixOS options and friends."""

__version__ = "0.8.0"
