# jobdaemon/__main__.py
"""Entry point for ``python -m jobdaemon``."""

from jobdaemon.cli import app

if __name__ == "__main__":
    app()
