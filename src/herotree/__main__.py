"""CLI entry point for herotree."""

import sys


def main() -> int:
    """Main entry point for the herotree CLI."""
    from herotree.cli import run_cli

    return run_cli(sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())
