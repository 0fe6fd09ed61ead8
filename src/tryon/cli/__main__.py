"""CLI entry point for tryon.cli module.

Enables execution via: python -m tryon.cli
"""

from tryon.cli.reap_generations import main

if __name__ == "__main__":
    raise SystemExit(main())
