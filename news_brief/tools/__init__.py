"""MCP tools for news_brief."""

from .pipeline_tools import pipeline_tools

__all__ = ["pipeline_tools"]
