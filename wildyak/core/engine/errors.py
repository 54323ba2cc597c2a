# wildyak/core/engine/errors.py
"""
Typed errors raised by the dialog engine.

The engine never catches errors raised by topic ``init``/``after_init``
or by hook ``parse``/``handler`` functions; those reach the caller
unchanged. The types below cover the engine's own failure modes.
"""
from __future__ import annotations


class YakError(Exception):
    """Base class for all engine errors."""

    def __init__(self, detail: str = "Engine error"):
        self.detail = detail
        super().__init__(detail)


class StackDisciplineError(YakError):
    """A topic was entered or exited from a context that is not the top of the stack."""


class UnknownStrategyError(YakError):
    """Unrecognized message batching strategy, or a custom strategy without a parser."""


class UnknownChannelError(YakError):
    """No message formatter is registered for the session's channel type."""


class SessionSerializationError(YakError):
    """A durable session store could not encode or decode a session."""
