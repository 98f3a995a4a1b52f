"""Core data models shared by the dialogues, loader, service, and CLI."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from flashup.core.errors import DialogueFailed, DialogueTimeout, EndOfStreamError

UNKNOWN = "unknown"


@dataclass(frozen=True)
class Continue:
    reply: str | None = None
    reset_clock: bool = False
    record: bool = False


@dataclass(frozen=True)
class Resolve:
    requires: tuple[str, ...] = ()


@dataclass(frozen=True)
class Fail:
    reason: str | None = None


Action = Union[Continue, Resolve, Fail]


@dataclass(frozen=True)
class Rule:
    pattern: re.Pattern[str]
    action: Action


class DialogueStatus(str, Enum):
    RESOLVED = "resolved"
    TIMEOUT = "timeout"
    END_OF_STREAM = "end-of-stream"
    FAILED = "failed"


@dataclass
class DialogueResult:
    status: DialogueStatus | None = None
    fields: dict[str, str] = field(default_factory=dict)
    records: list[dict[str, str]] = field(default_factory=list)
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is DialogueStatus.RESOLVED

    def raise_for_status(self, what: str) -> DialogueResult:
        """Return self when resolved, otherwise raise the matching dialogue error."""
        if self.status is DialogueStatus.RESOLVED:
            return self
        if self.status is DialogueStatus.TIMEOUT:
            raise DialogueTimeout(f"{what}: timed out waiting for the device", self)
        if self.status is DialogueStatus.END_OF_STREAM:
            raise EndOfStreamError(f"{what}: session closed unexpectedly", self)
        raise DialogueFailed(f"{what}: {self.reason or 'device reported an error'}", self)


@dataclass(frozen=True)
class VersionInfo:
    image: str = UNKNOWN
    family: str = UNKNOWN
    processor: str = UNKNOWN
    flash_size: str = UNKNOWN


@dataclass(frozen=True)
class DeviceProfile:
    id: str
    family: re.Pattern[str]
    overrides: dict[str, Any]
    processor: str | None = None


@dataclass(frozen=True)
class UpgradeSettings:
    protocol: str = "tftp"
    server: str | None = None
    source_dir: str | None = None
    archive: bool = False
    device: str = "flash"
    image: str | None = None
    boot_device: str | None = None
    boot_image: str | None = None
    min_flash: str | int | None = None
    format: bool = False
    delete: bool = False
    squeeze: bool = False
    verify: bool = True
    reload: bool = False
    force: bool = False
    non_recursive: bool = False
    login_command: str = "clogin {host}"


@dataclass(frozen=True)
class FileEntry:
    path: str
    flags: str

    @property
    def is_directory(self) -> bool:
        return self.flags.startswith("d")

    @property
    def name(self) -> str:
        return self.path.rstrip("/").rsplit("/", 1)[-1]


class WalkStatus(str, Enum):
    OK = "ok"
    ALREADY_CURRENT = "already-current"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class WalkResult:
    status: WalkStatus
    entries: tuple[FileEntry, ...] = ()


@dataclass(frozen=True)
class HostOutcome:
    host: str
    status: str
    detail: str = ""
    version: VersionInfo | None = None
