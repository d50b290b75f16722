"""Threaded blog comments with moderation, voting and reporting."""

__version__ = "0.1.0"
