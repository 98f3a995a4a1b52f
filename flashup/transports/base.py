"""Transport interfaces."""

from __future__ import annotations

from typing import Protocol


class Channel(Protocol):
    def send(self, text: str) -> None:
        """Write text to the device session."""

    def receive(self, timeout: float) -> str:
        """Return text that arrived within timeout, or "" if none did.

        Raises ChannelClosedError once the session has ended.
        """

    def close(self) -> None:
        """Release the session."""


class Spawner(Protocol):
    def __call__(self, command: str) -> Channel:
        """Start the login helper and return its channel."""
