"""Per-host device session: login, prompt tracking, and teardown."""

from __future__ import annotations

import logging
import time

from flashup.core import patterns
from flashup.core.dialogue import Clock, run_dialogue
from flashup.core.errors import ConnectionFailure, DialogueError, TransportError
from flashup.core.model import Continue, DialogueResult, Fail, Resolve, Rule
from flashup.transports.base import Channel, Spawner

LOGGER = logging.getLogger(__name__)

LOGIN_TIMEOUT = 60
PAGING_TIMEOUT = 30
NEWLINE = "\r"


class Session:
    """Live channel to one host plus the prompt it answered with."""

    def __init__(self, host: str, channel: Channel, prompt: str, *, clock: Clock = time.monotonic) -> None:
        self.host = host
        self.channel = channel
        self.prompt = prompt
        self.clock = clock

    @property
    def prompt_rule(self) -> Rule:
        return Rule(patterns.prompt_pattern(self.prompt), Resolve())

    def converse(self, command: str | None, rules: list[Rule], budget: float) -> DialogueResult:
        """Send command (if any) and run one dialogue against the reply."""
        if command is not None:
            LOGGER.debug("%s: sending %r", self.host, command)
            self.channel.send(command + NEWLINE)
        return run_dialogue(self.channel, rules, budget, clock=self.clock)

    def close(self) -> None:
        try:
            self.channel.send("exit" + NEWLINE)
        except TransportError as exc:
            LOGGER.debug("%s: exit not delivered (%s)", self.host, exc)
        finally:
            self.channel.close()


def open_session(host: str, login_command: str, spawn: Spawner, *, clock: Clock = time.monotonic) -> Session:
    command = login_command.format(host=host)
    LOGGER.info("%s: connecting with '%s'", host, command)
    channel = spawn(command)

    result = run_dialogue(
        channel,
        [
            Rule(patterns.LOGIN_REFUSED, Fail()),
            Rule(patterns.PRIVILEGED_PROMPT, Resolve(requires=("prompt",))),
        ],
        LOGIN_TIMEOUT,
        clock=clock,
    )
    if not result.ok:
        channel.close()
        reason = result.reason or result.status.value
        raise ConnectionFailure(f"{host}: no privileged prompt ({reason})")

    session = Session(host, channel, result.fields["prompt"], clock=clock)
    try:
        session.converse(
            "terminal length 0",
            [Rule(patterns.PAGER, Continue(reply=" ")), session.prompt_rule],
            PAGING_TIMEOUT,
        ).raise_for_status("terminal length 0")
    except DialogueError as exc:
        channel.close()
        raise ConnectionFailure(f"{host}: session not usable ({exc})") from exc
    return session
