"""Main module for feedutils.

This module allows the tool to be run as a Python module using:
python -m feedutils

It delegates to the command line group's main function.
"""

from feedutils.cli.app import main

if __name__ == "__main__":
    main()
