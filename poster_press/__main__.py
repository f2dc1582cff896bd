# poster_press/__main__.py
"""
Entry point: ``python -m poster_press`` starts the worker.

Equivalent to ``poster-press run``; other subcommands are available through
the console script.
"""

import sys

from poster_press.cli import app

if __name__ == "__main__":
    sys.exit(app(["run", *sys.argv[1:]]))
