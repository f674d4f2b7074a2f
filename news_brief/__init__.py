"""news_brief - discovers new articles, summarizes them and posts them to a channel."""

__version__ = "0.1.0"
