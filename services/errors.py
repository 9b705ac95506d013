"""Exceptions raised by the session pipeline."""

from __future__ import annotations


class TransportError(Exception):
    """The serial link failed; the current session cannot continue."""


class NotConnectedError(RuntimeError):
    """An operation needs an open session but none is connected."""


class WaitCancelled(Exception):
    """A marker wait was aborted because its session was torn down."""
