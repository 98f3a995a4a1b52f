"""Service layer used by the CLI and the public API."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from flashup.core.config_loader import load_config
from flashup.core.dialogue import Clock
from flashup.core.errors import DialogueError, MissingTargetImageError, TransportError
from flashup.core.model import (
    DeviceProfile,
    HostOutcome,
    UpgradeSettings,
    VersionInfo,
    WalkStatus,
)
from flashup.core.mutators import reload_device, upload_image
from flashup.core.profile_match import resolve_profile
from flashup.core.session import Session, open_session
from flashup.core.settings import build_settings, check_flash
from flashup.core.version import inspect_version, normalize_image
from flashup.core.walker import walk_directory
from flashup.transports.base import Spawner
from flashup.transports.pexpect_channel import spawn as pexpect_spawn

LOGGER = logging.getLogger(__name__)


class UpgradeService:
    def __init__(
        self,
        *,
        spawn: Spawner | None = None,
        defaults: Mapping[str, Any] | None = None,
        profiles: Sequence[DeviceProfile] | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self.load_warnings: tuple[str, ...] = ()
        if defaults is None or profiles is None:
            loaded = load_config()
            self.load_warnings = loaded.warnings
            defaults = loaded.defaults if defaults is None else defaults
            profiles = loaded.profiles if profiles is None else profiles
        self.defaults = dict(defaults)
        self.profiles = tuple(profiles)
        self.spawn = spawn or pexpect_spawn
        self.clock = clock

    def _login_command(self, overrides: Mapping[str, Any] | None) -> str:
        # The profile is unknown until the device has answered, so only
        # defaults and overrides can choose the login helper.
        return build_settings(self.defaults, None, overrides).login_command

    def _open(self, host: str, overrides: Mapping[str, Any] | None) -> Session:
        return open_session(host, self._login_command(overrides), self.spawn, clock=self.clock)

    def inspect(
        self, host: str, overrides: Mapping[str, Any] | None = None
    ) -> tuple[VersionInfo, DeviceProfile | None]:
        session = self._open(host, overrides)
        try:
            version = inspect_version(session)
            return version, resolve_profile(self.profiles, version)
        finally:
            session.close()

    def run(
        self,
        hosts: Sequence[str],
        overrides: Mapping[str, Any] | None = None,
        *,
        fail_fast: bool = False,
    ) -> list[HostOutcome]:
        return list(self.iter_run(hosts, overrides, fail_fast=fail_fast))

    def iter_run(
        self,
        hosts: Sequence[str],
        overrides: Mapping[str, Any] | None = None,
        *,
        fail_fast: bool = False,
    ) -> Iterator[HostOutcome]:
        """Upgrade each host in turn, yielding its outcome as soon as it is known.

        Connection and dialogue failures mark the host as failed and move on
        unless fail_fast is set. InsufficientFlashError stops the whole run.
        """
        for host in hosts:
            try:
                outcome = self.upgrade_host(host, overrides)
            except MissingTargetImageError as exc:
                LOGGER.warning("%s", exc)
                outcome = HostOutcome(
                    host=host, status="skipped", detail="no target image", version=exc.version
                )
            except (DialogueError, TransportError) as exc:
                LOGGER.error("%s: aborted: %s", host, exc)
                if fail_fast:
                    raise
                outcome = HostOutcome(host=host, status="failed", detail=str(exc))
            yield outcome

    def upgrade_host(self, host: str, overrides: Mapping[str, Any] | None = None) -> HostOutcome:
        session = self._open(host, overrides)
        try:
            return self._upgrade(session, overrides)
        finally:
            session.close()

    def _upgrade(self, session: Session, overrides: Mapping[str, Any] | None) -> HostOutcome:
        host = session.host
        version = inspect_version(session)
        LOGGER.info(
            "%s: %s (%s) running %s with %s flash",
            host,
            version.family,
            version.processor,
            version.image,
            version.flash_size,
        )

        profile = resolve_profile(self.profiles, version)
        settings = build_settings(self.defaults, profile, overrides)
        if not settings.image:
            raise MissingTargetImageError(f"{host}: no target image configured for {version.family}", version)

        if not check_flash(settings, version, host) and settings.min_flash is not None:
            LOGGER.warning("%s: flash size unknown, minimum %s not checked", host, settings.min_flash)

        uploaded: list[str] = []
        unlisted: list[str] = []
        running = normalize_image(version.image)
        if running == settings.image:
            LOGGER.info("%s: already running %s", host, settings.image)
        else:
            staged = self._stage(session, settings, settings.image, settings.device)
            if staged is WalkStatus.OK:
                uploaded.append(f"{settings.device}:{settings.image}")
            elif staged is WalkStatus.TIMEOUT:
                unlisted.append(f"{settings.device}:")

        if settings.boot_device and settings.boot_image:
            staged = self._stage(session, settings, settings.boot_image, settings.boot_device, quiet=True)
            if staged is WalkStatus.OK:
                uploaded.append(f"{settings.boot_device}:{settings.boot_image}")

        if uploaded and settings.reload:
            reload_device(session)

        if uploaded:
            return HostOutcome(host=host, status="upgraded", detail=", ".join(uploaded), version=version)
        if unlisted:
            return HostOutcome(
                host=host, status="skipped", detail=f"could not list {unlisted[0]}", version=version
            )
        return HostOutcome(host=host, status="current", detail=settings.image, version=version)

    def _stage(
        self,
        session: Session,
        settings: UpgradeSettings,
        image: str,
        filesystem: str,
        *,
        quiet: bool = False,
    ) -> WalkStatus:
        """Walk filesystem and upload image unless it is already there.

        Returns OK only when an upload took place.
        """
        walk = walk_directory(
            session,
            filesystem,
            image,
            non_recursive=settings.non_recursive,
            force=settings.force,
        )
        if walk.status is WalkStatus.ALREADY_CURRENT:
            LOGGER.info("%s: %s already staged on %s:, nothing to upload", session.host, image, filesystem)
        elif walk.status is WalkStatus.TIMEOUT:
            if not quiet:
                LOGGER.warning("%s: could not enumerate %s:, skipping upload", session.host, filesystem)
        else:
            upload_image(session, settings, image, filesystem, walk.entries, do_format=settings.format)
        return walk.status
