from __future__ import annotations

from collections import deque
from collections.abc import Callable

import pytest

from flashup.core.errors import ChannelClosedError
from flashup.core.session import Session


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedChannel:
    """Plays back (delay, text) steps on a virtual clock, ignoring what is sent."""

    def __init__(self, clock: FakeClock, steps=(), *, close_at_end: bool = False) -> None:
        self.clock = clock
        self.steps = deque(steps)
        self.close_at_end = close_at_end
        self.sent: list[str] = []
        self.closed = False

    def send(self, text: str) -> None:
        self.sent.append(text)

    def receive(self, timeout: float) -> str:
        if not self.steps:
            if self.close_at_end:
                raise ChannelClosedError("closed")
            self.clock.advance(timeout)
            return ""
        delay, text = self.steps[0]
        if delay > timeout:
            self.clock.advance(timeout)
            self.steps[0] = (delay - timeout, text)
            return ""
        self.steps.popleft()
        self.clock.advance(delay)
        return text

    def close(self) -> None:
        self.closed = True


class FakeDevice:
    """Answers commands from a script.

    script maps a command to a list of output segments. The first segment is
    emitted when the command arrives, each later one when the next reply is
    sent. Commands missing from the script get an IOS syntax error. The
    prompt is appended after the last segment unless the segment list ends
    with None, which closes the stream instead.
    """

    def __init__(
        self,
        clock: FakeClock,
        script: dict[str, list[str | None]],
        *,
        prompt: str = "sw1#",
        banner: str = "\r\nUser Access Verification\r\n\r\n",
    ) -> None:
        self.clock = clock
        self.script = script
        self.prompt = prompt
        self.commands: list[str] = []
        self.replies: list[str] = []
        self.pending = banner + prompt
        self.segments: deque[str | None] = deque()
        self.eof = False
        self.closed = False

    def _emit_next(self) -> None:
        if not self.segments:
            return
        segment = self.segments.popleft()
        if segment is None:
            self.eof = True
            return
        self.pending += segment
        if not self.segments:
            self.pending += self.prompt

    def send(self, text: str) -> None:
        line = text.rstrip("\r")
        if line == "exit":
            self.eof = True
        elif text.endswith("\r") and line in self.script:
            self.commands.append(line)
            self.segments = deque(self.script[line])
            self.pending += f"{line}\r\n"
            if self.segments:
                self._emit_next()
            else:
                self.pending += self.prompt
        elif self.segments:
            self.replies.append(text)
            self._emit_next()
        elif text.endswith("\r") and line:
            self.commands.append(line)
            self.pending += f"{line}\r\n% Invalid input detected at '^' marker.\r\n\r\n{self.prompt}"
        else:
            self.replies.append(text)

    def receive(self, timeout: float) -> str:
        if self.pending:
            text, self.pending = self.pending, ""
            self.clock.advance(0.01)
            return text
        if self.eof:
            raise ChannelClosedError("closed")
        self.clock.advance(timeout)
        return ""

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scripted_channel(clock: FakeClock) -> Callable[..., ScriptedChannel]:
    def factory(steps=(), **kwargs) -> ScriptedChannel:
        return ScriptedChannel(clock, steps, **kwargs)

    return factory


@pytest.fixture
def fake_device(clock: FakeClock) -> Callable[..., FakeDevice]:
    def factory(script: dict[str, list[str | None]], **kwargs) -> FakeDevice:
        return FakeDevice(clock, script, **kwargs)

    return factory


@pytest.fixture
def device_session(clock: FakeClock, fake_device) -> Callable[..., tuple[Session, FakeDevice]]:
    """Session already past login, talking to a FakeDevice."""

    def factory(script: dict[str, list[str | None]]) -> tuple[Session, FakeDevice]:
        device = fake_device(script, banner="")
        device.pending = ""
        return Session("sw1", device, "sw1#", clock=clock), device

    return factory
