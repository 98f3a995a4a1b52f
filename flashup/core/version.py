"""Version report parsing."""

from __future__ import annotations

from flashup.core import patterns
from flashup.core.model import UNKNOWN, Continue, Resolve, Rule, VersionInfo
from flashup.core.session import Session

VERSION_TIMEOUT = 100


def inspect_version(session: Session) -> VersionInfo:
    """Run `show version` and pull out image, family, processor, and flash size."""
    rules = [
        Rule(patterns.IMAGE_FILE, Continue()),
        Rule(patterns.FAMILY_BANNER, Continue()),
        Rule(patterns.CPU_LINE, Continue()),
        Rule(patterns.FLASH_SIZE, Continue()),
        Rule(patterns.PAGER, Continue(reply=" ")),
        Rule(patterns.prompt_pattern(session.prompt), Resolve(requires=("image", "family"))),
    ]
    fields = session.converse("show version", rules, VERSION_TIMEOUT).raise_for_status("show version").fields

    family = fields.get("family", UNKNOWN)
    processor = fields.get("processor", UNKNOWN)
    if "processor_override" in fields and patterns.CPU_OVERRIDE_FAMILY.search(family):
        processor = fields["processor_override"]

    return VersionInfo(
        image=fields.get("image", UNKNOWN),
        family=family,
        processor=processor,
        flash_size=fields.get("flash_size", UNKNOWN),
    )


def normalize_image(image: str) -> str:
    """Strip a `<fs>:` prefix and any directories from a running image path."""
    if ":" in image:
        image = image.split(":", 1)[1]
    return image.rstrip("/").rsplit("/", 1)[-1] or image
