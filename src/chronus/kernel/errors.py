"""
Exception hierarchy for the Chronus kernel.

Only caller mistakes raise. Provider, subscriber and storage failures are
recovered inside the engine and surface as events or StorageResult values.
"""
from __future__ import annotations


class ChronusError(Exception):
    """Base class for every error raised by Chronus."""


class InvalidContext(ChronusError, ValueError):
    """A context was registered without an id."""


class UnknownContext(ChronusError, LookupError):
    """A context id was activated before being registered."""

    def __init__(self, context_id: str):
        super().__init__(f"Unknown context: {context_id}")
        self.context_id = context_id


class InvalidFrame(ChronusError, ValueError):
    """A frame outside daily/weekly/monthly/annual."""


class InvalidCursor(ChronusError, ValueError):
    """A value that cannot be normalized to a timestamp."""


class InvalidAnchor(ChronusError, ValueError):
    """An anchor record that cannot be validated."""


class InvalidProvider(ChronusError, TypeError):
    """An object that does not satisfy the provider contract."""


class ConfigError(ChronusError, ValueError):
    """Invalid configuration value."""
