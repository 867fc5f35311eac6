"""sidekick CLI entry point."""

from sidekick.cli import app

if __name__ == "__main__":
    app()
