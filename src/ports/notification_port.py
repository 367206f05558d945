"""Notification ports — abstract interfaces for emission side effects.

The notification center depends on these protocols, never on a specific
push provider or audio backend. Both are optional.
"""

from __future__ import annotations

from typing import Protocol


class PushPort(Protocol):
    """Raises a platform notification outside the app."""

    async def push(self, title: str, body: str) -> None: ...


class SoundPort(Protocol):
    """Plays a short audio cue."""

    def play(self) -> None: ...
