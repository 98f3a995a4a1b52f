"""Device text recognised by the dialogues.

Every banner, prompt, and progress marker the dialogues react to is compiled
here, so a new device family's quirks are added in this module only.
"""

from __future__ import annotations

import re

# Session establishment
PRIVILEGED_PROMPT = re.compile(r"(?m)^(?P<prompt>[\w.\-/]+#)[ \t]*$")
LOGIN_REFUSED = re.compile(
    r"(?i)(?P<reason>connection refused|unable to connect[^\r\n]*|authentication failed[^\r\n]*"
    r"|permission denied[^\r\n]*|no such host[^\r\n]*|error: [^\r\n]*)"
)

PAGER = re.compile(r" ?--More-- ?")

# show version
IMAGE_FILE = re.compile(r'System image file is "(?P<image>[^"]+)"')
FAMILY_BANNER = re.compile(
    r"[Cc]isco (?P<family>[\w\-/+.]+) \((?P<processor>[^)]+)\) (?:processor|with)"
)
CPU_LINE = re.compile(r"(?m)^(?P<processor_override>[\w\-]+) CPU at \d+(?:\.\d+)?[MG]Hz")
# Whole lines only, so a read ending inside "flash-simulated" cannot match.
FLASH_SIZE = re.compile(
    r"(?m)^(?P<flash_size>\d+K) bytes of [^\r\n]*?[Ff]lash(?![\-\w])[^\r\n]*\r?\n"
)
# Families whose banner line reports a board revision where the CPU belongs.
CPU_OVERRIDE_FAMILY = re.compile(r"^(?:CISCO|C)?(?:18|28|38)\d\d")

# dir
LISTING_ROW = re.compile(
    r"(?m)^[ \t]*\d+[ \t]+(?P<flags>[\-a-z]{4,})[ \t]+\d+[ \t]+"
    r"(?:<no date>|\w{3}[ \t]+\d{1,2}[ \t]+\d{4}[ \t]+\d{2}:\d{2}:\d{2}"
    r"(?:\.\d+)?(?:[ \t]+[+\-]\d{2}:?\d{2})?)"
    r"[ \t]+(?P<name>[^\s]+)[ \t]*\r?\n"
)

# Errors printed by IOS commands
COMMAND_ERROR = re.compile(r"%Error[^\r\n]*|% ?Invalid input[^\r\n]*")

# delete
DELETE_FILENAME = re.compile(r"Delete filename \[[^\]\r\n]*\]\?")
DELETE_CONFIRM = re.compile(r"Delete [^\r\n]*\? ?\[confirm\]")

# format
FORMAT_CONTINUE = re.compile(r"Format operation may take a while\. Continue\? ?\[confirm\]")
FORMAT_DESTROY = re.compile(r"Format operation will destroy all data[^\r\n]*\[confirm\]")

# squeeze
SQUEEZE_CONTINUE = re.compile(r"Squeeze operation may take a while\. Continue\? ?\[confirm\]")
SQUEEZE_REMOVE = re.compile(r"All deleted files will be removed\. Continue\? ?\[confirm\]")

# copy / archive download-sw
ERASE_BEFORE_COPY = re.compile(r"Erase [\w\-]+: before copying\? ?\[confirm\]")
DESTINATION_FILENAME = re.compile(r"Destination filename \[[^\]\r\n]*\]\?")
REMOTE_HOST = re.compile(r"Address or name of remote host \[[^\]\r\n]*\]\?")
SOURCE_FILENAME = re.compile(r"Source filename \[[^\]\r\n]*\]\?")
OVERWRITE = re.compile(r"(?:Do you want to )?[Oo]ver ?write[^\r\n?]*\? ?\[confirm\]")
TRANSFER_COMPLETE = re.compile(
    r"\[OK - (?P<bytes_copied>\d+)(?:/\d+)? bytes\]|(?P<installed>All software images installed)"
)
TRANSFER_PROGRESS = re.compile(
    r"!+|\bLoading [^\r\n]*|[Ee]xtracting [^\r\n]*|[Ii]nstalling [^\r\n]*|examining image"
)
ARCHIVE_FAILURE = re.compile(r"(?P<reason>ERROR: [^\r\n]*|[^\r\n]*[Nn]ot enough space[^\r\n]*)")

# verify
VERIFY_DOTS = re.compile(r"\.{2,}")
EMBEDDED_HASH = re.compile(r"Embedded [Hh]ash\s+MD5\s*:\s*(?P<embedded>[0-9A-Fa-f]+)\r?\n")
COMPUTED_HASH = re.compile(r"Computed [Hh]ash\s+MD5\s*:\s*(?P<computed>[0-9A-Fa-f]+)\r?\n")
VERIFY_FAILURE = re.compile(r"(?P<reason>[^\r\n]*[Vv]erification [Ff]ailed[^\r\n]*)")

# reload
SAVE_CONFIG = re.compile(r"System configuration has been modified\. Save\? ?\[yes/no\]: ?")
PROCEED_RELOAD = re.compile(r"(?P<confirmed>Proceed with reload\? ?\[confirm\])")
RELOAD_STARTED = re.compile(r"Reload requested|%SYS-5-RELOAD")


def prompt_pattern(prompt: str) -> re.Pattern[str]:
    """Compile the literal prompt captured at login."""
    return re.compile(re.escape(prompt))
