"""CLI entry point for the prediction market app.

All command logic lives in the cli subpackage.
"""

from zento_markets.apps.markets.cli import app

__all__ = ["app", "main"]


def main() -> None:
    """Run the prediction market CLI application."""
    app()


if __name__ == "__main__":
    main()
