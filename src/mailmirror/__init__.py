"""Searchable local mirror of a remote mailbox."""

__version__ = "0.1.0"
