"""Append-only JSON-lines journal of reconstruction output."""

from journal.writer import JournalWriter

__all__ = ["JournalWriter"]
