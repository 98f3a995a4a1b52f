"""Login-helper channel implementation using pexpect."""

from __future__ import annotations

import shlex

import pexpect

from flashup.core.errors import ChannelClosedError, ConnectionFailure, TransportError

_READ_SIZE = 4096


class PexpectChannel:
    def __init__(self, child: pexpect.spawn) -> None:
        self.child = child

    def send(self, text: str) -> None:
        try:
            self.child.send(text)
        except OSError as exc:
            raise TransportError(f"Session write failed: {exc}") from exc

    def receive(self, timeout: float) -> str:
        try:
            return self.child.read_nonblocking(size=_READ_SIZE, timeout=timeout)
        except pexpect.TIMEOUT:
            return ""
        except pexpect.EOF as exc:
            raise ChannelClosedError("Session closed by peer") from exc

    def close(self) -> None:
        if not self.child.closed:
            self.child.close(force=True)


def spawn(command: str) -> PexpectChannel:
    argv = shlex.split(command)
    if not argv:
        raise ConnectionFailure("Login command is empty")
    try:
        child = pexpect.spawn(argv[0], argv[1:], encoding="utf-8", codec_errors="replace", echo=False)
    except pexpect.ExceptionPexpect as exc:
        raise ConnectionFailure(f"Could not start login helper '{argv[0]}': {exc}") from exc
    return PexpectChannel(child)
