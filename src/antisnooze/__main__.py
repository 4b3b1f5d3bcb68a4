"""Main function for antisnooze."""

from antisnooze.core import cli


def run_main() -> None:
    """Main entry point to antisnooze."""
    cli.app()


if __name__ == "__main__":
    cli.app()
