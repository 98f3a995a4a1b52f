"""Stable public API for building tooling on top of flashup.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from flashup.core.errors import (
    ConfigLoadError,
    ConfigurationGap,
    ConfigValidationError,
    ConnectionFailure,
    DialogueError,
    DialogueFailed,
    DialogueTimeout,
    EndOfStreamError,
    FlashupError,
    InsufficientFlashError,
    MissingTargetImageError,
    TransportError,
)
from flashup.core.model import (
    DeviceProfile,
    FileEntry,
    HostOutcome,
    UpgradeSettings,
    VersionInfo,
)
from flashup.core.service import UpgradeService
from flashup.transports.base import Channel, Spawner

__all__ = [
    "FlashupError",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigurationGap",
    "MissingTargetImageError",
    "InsufficientFlashError",
    "TransportError",
    "ConnectionFailure",
    "DialogueError",
    "DialogueTimeout",
    "DialogueFailed",
    "EndOfStreamError",
    "DeviceProfile",
    "FileEntry",
    "HostOutcome",
    "UpgradeSettings",
    "VersionInfo",
    "Channel",
    "Spawner",
    "Inspection",
    "Client",
]


@dataclass(frozen=True)
class Inspection:
    """Version report of a host and the profile it matched."""

    host: str
    version: VersionInfo
    profile_id: str | None


class Client:
    """Public client for running upgrades.

    A `Client` wraps configuration loading, session handling, and the upgrade
    sequence behind a stable API intended for third-party tools. Pass `spawn`
    to supply your own channel factory, and `defaults`/`profiles` to bypass
    the configuration files.
    """

    def __init__(
        self,
        *,
        spawn: Spawner | None = None,
        defaults: Mapping[str, Any] | None = None,
        profiles: Sequence[DeviceProfile] | None = None,
    ) -> None:
        self._service = UpgradeService(spawn=spawn, defaults=defaults, profiles=profiles)

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    @property
    def profiles(self) -> tuple[DeviceProfile, ...]:
        return self._service.profiles

    def inspect(self, host: str, *, login_command: str | None = None) -> Inspection:
        version, profile = self._service.inspect(host, {"login_command": login_command})
        return Inspection(host=host, version=version, profile_id=profile.id if profile else None)

    def upgrade(
        self,
        hosts: Sequence[str],
        *,
        overrides: Mapping[str, Any] | None = None,
        fail_fast: bool = False,
    ) -> list[HostOutcome]:
        return self._service.run(hosts, overrides, fail_fast=fail_fast)
