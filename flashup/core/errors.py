"""Domain-specific errors for flashup."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flashup.core.model import DialogueResult, VersionInfo


class FlashupError(Exception):
    """Base error for flashup."""


class ConfigLoadError(FlashupError):
    """Raised when a configuration document cannot be read."""


class ConfigValidationError(FlashupError):
    """Raised when a configuration document does not conform to schema or semantics."""


class ConfigurationGap(FlashupError):
    """Base error for settings that cannot support an upgrade."""


class MissingTargetImageError(ConfigurationGap):
    """Raised when no target image resolves for a device family."""

    def __init__(self, message: str, version: VersionInfo | None = None) -> None:
        super().__init__(message)
        self.version = version


class InsufficientFlashError(ConfigurationGap):
    """Raised when a device reports less flash than the configured minimum."""


class TransportError(FlashupError):
    """Base transport error."""


class ConnectionFailure(TransportError):
    """Raised when the login helper cannot be spawned or no prompt is reached."""


class ChannelClosedError(TransportError):
    """Raised by a channel once the peer has closed the stream."""


class DialogueError(FlashupError):
    """Base error for a dialogue that did not resolve."""

    def __init__(self, message: str, result: DialogueResult | None = None) -> None:
        super().__init__(message)
        self.result = result


class DialogueTimeout(DialogueError):
    """Raised when no rule matched within the dialogue budget."""


class EndOfStreamError(DialogueError):
    """Raised when the channel closed before the dialogue resolved."""


class DialogueFailed(DialogueError):
    """Raised when the device answered with a recognised failure."""
