"""Module entry point for running depinfer as a package.

Allows: python -m depinfer <command>
"""

from depinfer.cli import main
import sys

if __name__ == '__main__':
    sys.exit(main())
