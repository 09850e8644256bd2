"""
Main entry point for the Four Rows server.

Usage:
    python -m server.main

Or:
    four-rows-server
"""

from server.network.server import main


if __name__ == "__main__":
    main()
