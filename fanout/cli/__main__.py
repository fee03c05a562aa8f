"""CLI entry point.

Allows running the CLI as a module: python -m fanout.cli
"""

from fanout.cli import app

if __name__ == "__main__":
    app()
