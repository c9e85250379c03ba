"""Sync a markdown story backlog with a Trello board."""

__version__ = "0.1.0"
