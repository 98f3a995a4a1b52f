"""Dialogues that change device storage: format, delete, squeeze, upload, verify, reload."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from flashup.core import patterns
from flashup.core.errors import DialogueFailed
from flashup.core.model import (
    Continue,
    DialogueStatus,
    Fail,
    FileEntry,
    Resolve,
    Rule,
    UpgradeSettings,
)
from flashup.core.session import NEWLINE, Session

LOGGER = logging.getLogger(__name__)

FORMAT_TIMEOUT = 300
DELETE_TIMEOUT = 30
SQUEEZE_TIMEOUT = 300
DOWNLOAD_TIMEOUT = 600
VERIFY_TIMEOUT = 30
RELOAD_TIMEOUT = 30

PROTECTED_NAMES = frozenset(
    {
        "config.text",
        "config.text.renamed",
        "private-config.text",
        "private-config.text.renamed",
        "vlan.dat",
        "env_vars",
        "system_env_vars",
        "multiple-fs",
        "nvram_config",
    }
)


def format_filesystem(session: Session, filesystem: str) -> None:
    LOGGER.info("%s: formatting %s:", session.host, filesystem)
    session.converse(
        f"format {filesystem}:",
        [
            Rule(patterns.COMMAND_ERROR, Fail()),
            Rule(patterns.FORMAT_CONTINUE, Continue(reply=NEWLINE)),
            Rule(patterns.FORMAT_DESTROY, Continue(reply=NEWLINE)),
            session.prompt_rule,
        ],
        FORMAT_TIMEOUT,
    ).raise_for_status(f"format {filesystem}:")


def delete_files(
    session: Session,
    filesystem: str,
    files: Iterable[FileEntry],
    *,
    non_recursive: bool = False,
    protected: frozenset[str] = PROTECTED_NAMES,
) -> int:
    """Delete every unprotected entry; returns the number of delete commands sent.

    A stalled exchange on any one file aborts the whole batch.
    """
    verb = "delete /force /recursive" if non_recursive else "delete /force"
    rules = [
        Rule(patterns.DELETE_FILENAME, Continue(reply=NEWLINE)),
        Rule(patterns.DELETE_CONFIRM, Continue(reply=NEWLINE)),
        session.prompt_rule,
    ]
    sent = 0
    for entry in files:
        if entry.name in protected:
            LOGGER.debug("%s: keeping protected %s", session.host, entry.path)
            continue
        command = f"{verb} {filesystem}:{entry.path}"
        sent += 1
        session.converse(command, rules, DELETE_TIMEOUT).raise_for_status(command)
    return sent


def squeeze_filesystem(session: Session, filesystem: str) -> None:
    LOGGER.info("%s: squeezing %s:", session.host, filesystem)
    session.converse(
        f"squeeze {filesystem}:",
        [
            Rule(patterns.COMMAND_ERROR, Fail()),
            Rule(patterns.SQUEEZE_CONTINUE, Continue(reply=NEWLINE)),
            Rule(patterns.SQUEEZE_REMOVE, Continue(reply=NEWLINE)),
            session.prompt_rule,
        ],
        SQUEEZE_TIMEOUT,
    ).raise_for_status(f"squeeze {filesystem}:")


def source_url(settings: UpgradeSettings, image: str) -> str:
    if not settings.server:
        return f"{settings.protocol}:{image}"
    directory = (settings.source_dir or "").strip("/")
    path = f"{directory}/{image}" if directory else image
    return f"{settings.protocol}://{settings.server}/{path}"


def _download(session: Session, command: str) -> None:
    """Wait out a copy or archive download, answering its interactive questions."""
    result = session.converse(
        command,
        [
            Rule(patterns.COMMAND_ERROR, Fail()),
            Rule(patterns.ARCHIVE_FAILURE, Fail()),
            Rule(patterns.ERASE_BEFORE_COPY, Continue(reply="n", reset_clock=True)),
            Rule(patterns.DESTINATION_FILENAME, Continue(reply=NEWLINE, reset_clock=True)),
            Rule(patterns.REMOTE_HOST, Continue(reply=NEWLINE, reset_clock=True)),
            Rule(patterns.SOURCE_FILENAME, Continue(reply=NEWLINE, reset_clock=True)),
            Rule(patterns.OVERWRITE, Continue(reply=NEWLINE, reset_clock=True)),
            Rule(patterns.TRANSFER_COMPLETE, Continue(reset_clock=True)),
            Rule(patterns.TRANSFER_PROGRESS, Continue(reset_clock=True)),
            session.prompt_rule,
        ],
        DOWNLOAD_TIMEOUT,
    ).raise_for_status(command)
    if "bytes_copied" not in result.fields and "installed" not in result.fields:
        raise DialogueFailed(f"{command}: prompt returned without a completion banner", result)


def upload_image(
    session: Session,
    settings: UpgradeSettings,
    image: str,
    filesystem: str,
    files: Iterable[FileEntry],
    *,
    do_format: bool = False,
) -> None:
    url = source_url(settings, image)
    if settings.archive:
        LOGGER.info("%s: installing %s via archive download-sw", session.host, url)
        _download(session, f"archive download-sw /overwrite {url}")
        return

    if do_format:
        format_filesystem(session, filesystem)
    elif settings.delete:
        deleted = delete_files(session, filesystem, files, non_recursive=settings.non_recursive)
        LOGGER.info("%s: removed %d entries from %s:", session.host, deleted, filesystem)
    if settings.squeeze:
        squeeze_filesystem(session, filesystem)

    LOGGER.info("%s: copying %s to %s:", session.host, url, filesystem)
    _download(session, f"copy {url} {filesystem}:{image}")
    if settings.verify:
        verify_image(session, filesystem, image)


def verify_image(session: Session, filesystem: str, image: str) -> None:
    command = f"verify {filesystem}:{image}"
    fields = session.converse(
        command,
        [
            Rule(patterns.COMMAND_ERROR, Fail()),
            Rule(patterns.VERIFY_FAILURE, Fail()),
            Rule(patterns.EMBEDDED_HASH, Continue()),
            Rule(patterns.COMPUTED_HASH, Continue()),
            session.prompt_rule,
            Rule(patterns.VERIFY_DOTS, Continue()),
        ],
        VERIFY_TIMEOUT,
    ).raise_for_status(command).fields

    embedded, computed = fields.get("embedded"), fields.get("computed")
    if embedded and computed and embedded.lower() != computed.lower():
        raise DialogueFailed(f"{command}: computed MD5 {computed} does not match embedded {embedded}")
    LOGGER.info("%s: %s:%s verified", session.host, filesystem, image)


def reload_device(session: Session) -> None:
    LOGGER.info("%s: reloading", session.host)
    result = session.converse(
        "reload",
        [
            Rule(patterns.COMMAND_ERROR, Fail()),
            Rule(patterns.SAVE_CONFIG, Continue(reply="no" + NEWLINE)),
            Rule(patterns.PROCEED_RELOAD, Continue(reply=NEWLINE)),
            Rule(patterns.RELOAD_STARTED, Resolve()),
        ],
        RELOAD_TIMEOUT,
    )
    if result.status is DialogueStatus.END_OF_STREAM:
        return
    if result.status is DialogueStatus.TIMEOUT and "confirmed" in result.fields:
        LOGGER.warning("%s: reload confirmed but the session stayed open", session.host)
        return
    result.raise_for_status("reload")
