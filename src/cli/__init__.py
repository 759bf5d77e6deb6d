"""EnVivo command line interface.

Usage:
    python -m src.cli [command] [options]

Commands:
    scrape        Run the ingestion for every (or selected) source
    sources       List available sources
    delete-event  Delete an event and blacklist it
    blacklist     Show blacklist entries
    reset         Delete all events and blacklist entries
"""

from src.cli.main import app

__all__ = ["app"]
