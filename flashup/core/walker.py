"""Recursive enumeration of a device filesystem."""

from __future__ import annotations

import logging
from collections import deque

from flashup.core import patterns
from flashup.core.model import Continue, FileEntry, Rule, WalkResult, WalkStatus
from flashup.core.session import Session

LOGGER = logging.getLogger(__name__)

LISTING_TIMEOUT = 30


def _list_directory(session: Session, filesystem: str, subdir: str) -> list[dict[str, str]] | None:
    result = session.converse(
        f"dir {filesystem}:/{subdir}",
        [Rule(patterns.LISTING_ROW, Continue(record=True)), session.prompt_rule],
        LISTING_TIMEOUT,
    )
    if not result.ok:
        LOGGER.debug(
            "%s: listing %s:/%s ended with %s", session.host, filesystem, subdir, result.status.value
        )
        return None
    return result.records


def walk_directory(
    session: Session,
    filesystem: str,
    target_image: str | None,
    *,
    non_recursive: bool = False,
    force: bool = False,
) -> WalkResult:
    """List every file under filesystem.

    Subdirectories are listed breadth-first, each only after the listing that
    revealed it has drained to the prompt. Finding target_image anywhere stops
    the walk with ALREADY_CURRENT unless force is set.
    """
    entries: list[FileEntry] = []
    pending: deque[str] = deque([""])

    while pending:
        subdir = pending.popleft()
        rows = _list_directory(session, filesystem, subdir)
        if rows is None:
            return WalkResult(WalkStatus.TIMEOUT)

        for row in rows:
            name, flags = row["name"], row["flags"]
            if not force and target_image and name == target_image:
                LOGGER.info("%s: %s already present on %s:", session.host, target_image, filesystem)
                return WalkResult(WalkStatus.ALREADY_CURRENT)

            entry = FileEntry(path=f"{subdir}{name}", flags=flags)
            if entry.is_directory and not non_recursive:
                pending.append(f"{entry.path}/")
            else:
                entries.append(entry)

    return WalkResult(WalkStatus.OK, tuple(entries))
