"""Main module for the news_brief MCP server.

This module allows the server to be run as a Python module using:
python -m news_brief

It delegates to the server application's main function.
"""

from news_brief.server.app import main

if __name__ == "__main__":
    main()
