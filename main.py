"""Main entry point for the alias engine command line."""
from __future__ import annotations

import sys

from dotenv import load_dotenv

# Load .env early so configuration sees ALIAS_* variables
load_dotenv()

from app.startup import run_application  # noqa: E402


def main() -> None:
    """Application entry point."""
    sys.exit(run_application(sys.argv[1:]))


__all__ = ["main"]

if __name__ == "__main__":
    main()
