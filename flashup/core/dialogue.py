"""Generic rule-driven dialogue engine.

A dialogue reads text from a channel, scans the unconsumed buffer with an
ordered rule set, and reacts to the first rule that matches anywhere in it.
Only the matched span is consumed, so text a lower-priority rule still
needs survives a match further along the buffer. `Continue` sends
an optional reply and keeps reading, `Resolve` ends the dialogue, `Fail` ends
it with a reason. The deadline is fixed at entry unless a matched `Continue`
asks for the clock to be reset.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable, Sequence

from flashup.core.errors import ChannelClosedError
from flashup.core.model import Continue, DialogueResult, DialogueStatus, Fail, Resolve, Rule
from flashup.transports.base import Channel

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], float]


class Matcher:
    """Ordered first-match search over a text buffer."""

    def __init__(self, rules: Sequence[Rule]) -> None:
        self.rules = tuple(rules)

    def search(self, buffer: str) -> tuple[Rule, re.Match[str]] | None:
        for rule in self.rules:
            for match in rule.pattern.finditer(buffer):
                if match.end() > match.start():
                    return rule, match
        return None


def _absorb(result: DialogueResult, match: re.Match[str], record: bool) -> None:
    groups = {name: value for name, value in match.groupdict().items() if value is not None}
    if record:
        result.records.append(groups)
    else:
        result.fields.update(groups)


def _fail_reason(action: Fail, match: re.Match[str]) -> str:
    if action.reason:
        return action.reason
    return match.groupdict().get("reason") or match.group(0).strip()


def run_dialogue(
    channel: Channel,
    rules: Sequence[Rule],
    budget: float,
    *,
    clock: Clock = time.monotonic,
) -> DialogueResult:
    matcher = Matcher(rules)
    result = DialogueResult()
    buffer = ""
    deadline = clock() + budget

    while True:
        hit = matcher.search(buffer)
        while hit is not None:
            rule, match = hit
            buffer = buffer[: match.start()] + buffer[match.end() :]
            action = rule.action

            if isinstance(action, Fail):
                _absorb(result, match, record=False)
                result.status = DialogueStatus.FAILED
                result.reason = _fail_reason(action, match)
                return result

            if isinstance(action, Continue):
                _absorb(result, match, record=action.record)
                if action.reply is not None:
                    channel.send(action.reply)
                if action.reset_clock:
                    deadline = clock() + budget
            elif isinstance(action, Resolve):
                _absorb(result, match, record=False)
                if all(name in result.fields for name in action.requires):
                    result.status = DialogueStatus.RESOLVED
                    return result
                LOGGER.debug("Prompt seen before %s were captured; still waiting", action.requires)

            hit = matcher.search(buffer)

        remaining = deadline - clock()
        if remaining <= 0:
            result.status = DialogueStatus.TIMEOUT
            return result

        try:
            buffer += channel.receive(remaining)
        except ChannelClosedError:
            result.status = DialogueStatus.END_OF_STREAM
            return result
