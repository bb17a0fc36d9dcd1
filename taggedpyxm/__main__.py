"""
PYXM CLI Entry Point
====================

Allows running the CLI as a module: python -m taggedpyxm
"""

from taggedpyxm.cli.main import main

if __name__ == "__main__":
    main()
