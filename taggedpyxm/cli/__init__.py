"""
PYXM CLI Package
================

Command line interface (``pyxm``).
"""

from taggedpyxm.cli.main import cli, main

__all__ = ["cli", "main"]
