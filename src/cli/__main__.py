"""Entry point for running CLI as module.

Usage:
    python -m src.cli scrape --source ticketmaster
    python -m src.cli sources
"""

from src.cli.main import main

if __name__ == "__main__":
    main()
