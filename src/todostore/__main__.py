"""Entry point for running todostore as a module.

Allows running the application with:
    python -m todostore

This delegates to the Typer CLI app.
"""

from todostore.cli import app

if __name__ == "__main__":
    app()
