"""Run the BlockForge CLI with ``python -m apps.cli``."""

import os
import sys

# The repository root holds the 'packages' and 'apps' trees.
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from apps.cli.blockforge import cli

if __name__ == "__main__":
    cli(prog_name="blockforge")
