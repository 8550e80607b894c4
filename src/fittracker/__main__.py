"""Main entry point for the fittracker package."""

from fittracker.challengeboard.cli import app


def main():
    """Run the challengeboard command-line interface."""
    app()


if __name__ == "__main__":
    main()
