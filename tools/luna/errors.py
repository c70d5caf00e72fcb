"""Internal exceptions. The engine catches all of them; none reach callers."""

from __future__ import annotations


class LunaError(Exception):
    """Base class for Luna local intelligence errors."""


class CapabilityInputError(LunaError):
    """A handler could not make sense of its input (e.g. no arithmetic found)."""


class HandlerExecutionFailure(LunaError):
    """A capability raised or returned malformed output."""

    def __init__(self, capability: str, reason: str):
        super().__init__(f"{capability}: {reason}")
        self.capability = capability
        self.reason = reason


class CacheCorruption(LunaError):
    """A cache entry failed validation and was discarded."""
