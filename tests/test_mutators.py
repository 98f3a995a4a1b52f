from __future__ import annotations

import pytest

from flashup.core.errors import DialogueFailed, DialogueTimeout
from flashup.core.model import FileEntry, UpgradeSettings
from flashup.core.mutators import (
    PROTECTED_NAMES,
    delete_files,
    format_filesystem,
    reload_device,
    source_url,
    squeeze_filesystem,
    upload_image,
    verify_image,
)
from flashup.core.session import Session

COPY_OUTPUT = (
    "Destination filename [c2960-lanbasec.bin]? ",
    "Accessing tftp://10.0.0.5/images/c2960-lanbasec.bin...\r\n"
    "Loading images/c2960-lanbasec.bin from 10.0.0.5 (via Vlan1): !!!!!!!!!!!!!!!\r\n"
    "[OK - 5821926 bytes]\r\n"
    "\r\n"
    "5821926 bytes copied in 91.210 secs (63830 bytes/sec)\r\n",
)

VERIFY_OUTPUT = (
    "Verifying file integrity of flash:c2960-lanbasec.bin.......................Done!\r\n"
    "Embedded Hash   MD5 : 0A1B2C3D4E5F60718293A4B5C6D7E8F9\r\n"
    "Computed Hash   MD5 : 0A1B2C3D4E5F60718293A4B5C6D7E8F9\r\n"
    "CCO Hash        MD5 : 1C2D3E4F5A6B7C8D9E0F1A2B3C4D5E6F\r\n"
    "Signature Verified\r\n"
)

COPY_COMMAND = "copy tftp://10.0.0.5/images/c2960-lanbasec.bin flash:c2960-lanbasec.bin"
SETTINGS = UpgradeSettings(server="10.0.0.5", source_dir="images", image="c2960-lanbasec.bin")


def test_format_answers_both_confirmations(device_session) -> None:
    session, device = device_session(
        {
            "format flash:": [
                "Format operation may take a while. Continue? [confirm]",
                "\r\nFormat operation will destroy all data in \"flash:\".  Continue? [confirm]",
                "\r\nFormat of flash: complete\r\n",
            ]
        }
    )

    format_filesystem(session, "flash")

    assert device.replies == ["\r", "\r"]


def test_format_timeout_is_fatal(device_session) -> None:
    session, _ = device_session({"format flash:": ["Format operation may take a while. Continue? ", "x"]})

    with pytest.raises(DialogueTimeout):
        format_filesystem(session, "flash")


def test_squeeze_answers_both_confirmations(device_session) -> None:
    session, device = device_session(
        {
            "squeeze flash:": [
                "All deleted files will be removed. Continue? [confirm]",
                "\r\nSqueeze operation may take a while. Continue? [confirm]",
                "\r\nSqueeze of flash complete\r\n",
            ]
        }
    )

    squeeze_filesystem(session, "flash")

    assert device.replies == ["\r", "\r"]


def test_delete_skips_protected_names(device_session) -> None:
    session, device = device_session({})
    files = [FileEntry(path=name, flags="-rwx") for name in sorted(PROTECTED_NAMES)]

    sent = delete_files(session, "flash", files)

    assert sent == 0
    assert device.commands == []


def test_delete_forces_each_unprotected_file(device_session) -> None:
    session, device = device_session(
        {
            "delete /force flash:old.bin": ["Delete filename [old.bin]? ", "Delete flash:/old.bin? [confirm]", "\r\n"],
            "delete /force flash:sub/info": [],
        }
    )
    files = [
        FileEntry(path="vlan.dat", flags="-rwx"),
        FileEntry(path="old.bin", flags="-rwx"),
        FileEntry(path="sub/info", flags="-rwx"),
        FileEntry(path="sub/config.text", flags="-rwx"),
    ]

    sent = delete_files(session, "flash", files)

    assert sent == 2
    assert device.commands == ["delete /force flash:old.bin", "delete /force flash:sub/info"]
    assert device.replies == ["\r", "\r"]


def test_delete_non_recursive_uses_recursive_flag(device_session) -> None:
    session, device = device_session({"delete /force /recursive flash:c2960-lanbase-mz.122-50.SE5": []})

    delete_files(session, "flash", [FileEntry(path="c2960-lanbase-mz.122-50.SE5", flags="drwx")], non_recursive=True)

    assert device.commands == ["delete /force /recursive flash:c2960-lanbase-mz.122-50.SE5"]


def test_one_stalled_delete_aborts_the_batch(device_session) -> None:
    session, device = device_session(
        {
            "delete /force flash:a.bin": ["Delete filename [a.bin]?", "stuck", "never"],
            "delete /force flash:b.bin": [],
        }
    )
    files = [FileEntry(path="a.bin", flags="-rwx"), FileEntry(path="b.bin", flags="-rwx")]

    with pytest.raises(DialogueTimeout):
        delete_files(session, "flash", files)

    assert device.commands == ["delete /force flash:a.bin"]


def test_classic_upload_copies_and_verifies(device_session) -> None:
    session, device = device_session(
        {
            COPY_COMMAND: list(COPY_OUTPUT),
            "verify flash:c2960-lanbasec.bin": [VERIFY_OUTPUT],
        }
    )

    upload_image(session, SETTINGS, "c2960-lanbasec.bin", "flash", [])

    assert device.commands == [COPY_COMMAND, "verify flash:c2960-lanbasec.bin"]
    assert device.replies == ["\r"]


def test_classic_upload_runs_requested_maintenance_first(device_session) -> None:
    settings = UpgradeSettings(server="10.0.0.5", source_dir="images", delete=True, squeeze=True, verify=False)
    session, device = device_session(
        {
            "delete /force flash:old.bin": [],
            "squeeze flash:": ["Squeeze operation may take a while. Continue? [confirm]", "\r\n"],
            COPY_COMMAND: list(COPY_OUTPUT),
        }
    )

    upload_image(session, settings, "c2960-lanbasec.bin", "flash", [FileEntry("old.bin", "-rwx")])

    assert device.commands == ["delete /force flash:old.bin", "squeeze flash:", COPY_COMMAND]


def test_format_replaces_delete(device_session) -> None:
    settings = UpgradeSettings(server="10.0.0.5", source_dir="images", delete=True, verify=False)
    session, device = device_session({"format flash:": [], COPY_COMMAND: list(COPY_OUTPUT)})

    upload_image(session, settings, "c2960-lanbasec.bin", "flash", [FileEntry("old.bin", "-rwx")], do_format=True)

    assert device.commands == ["format flash:", COPY_COMMAND]


def test_copy_declines_erase_prompt(device_session) -> None:
    settings = UpgradeSettings(server="10.0.0.5", source_dir="images", delete=False, verify=False)
    session, device = device_session(
        {
            COPY_COMMAND: [
                "Destination filename [c2960-lanbasec.bin]? ",
                "Erase flash: before copying? [confirm]",
                COPY_OUTPUT[1],
            ]
        }
    )

    upload_image(session, settings, "c2960-lanbasec.bin", "flash", [])

    assert device.replies == ["\r", "n"]


def test_copy_error_fails_upload(device_session) -> None:
    session, _ = device_session(
        {COPY_COMMAND: ["%Error opening tftp://10.0.0.5/images/c2960-lanbasec.bin (Timed out)\r\n"]}
    )

    with pytest.raises(DialogueFailed) as exc:
        upload_image(session, SETTINGS, "c2960-lanbasec.bin", "flash", [])

    assert "Timed out" in str(exc.value)


def test_copy_without_completion_banner_fails(device_session) -> None:
    session, _ = device_session({COPY_COMMAND: ["Accessing tftp://10.0.0.5/images/c2960-lanbasec.bin...\r\n"]})

    with pytest.raises(DialogueFailed):
        upload_image(session, SETTINGS, "c2960-lanbasec.bin", "flash", [])


def test_download_progress_keeps_long_transfer_alive(clock, scripted_channel) -> None:
    steps = [(0, "Loading images/c3750.tar from 10.0.0.5 (via Vlan1): ")]
    steps += [(500, "!")] * 4
    steps += [(10, "\r\nAll software images installed.\r\nsw1#")]
    session = Session("sw1", scripted_channel(steps), "sw1#", clock=clock)
    settings = UpgradeSettings(server="10.0.0.5", archive=True)

    upload_image(session, settings, "c3750.tar", "flash", [])

    assert session.channel.sent == ["archive download-sw /overwrite tftp://10.0.0.5/c3750.tar\r"]
    assert clock.now > 600


def test_archive_upload_skips_file_maintenance(device_session) -> None:
    settings = UpgradeSettings(server="10.0.0.5", archive=True, format=True, squeeze=True)
    command = "archive download-sw /overwrite tftp://10.0.0.5/c3750.tar"
    session, device = device_session(
        {
            command: [
                "examining image...\r\n"
                "Loading c3750.tar from 10.0.0.5 (via Vlan1): !!!!!!!!\r\n"
                "[OK - 16547840 bytes]\r\n"
                "extracting info (110 bytes)\r\n"
                "Installing c3750-ipservicesk9-mz.150-2.SE11 (directory)\r\n"
                "All software images installed.\r\n"
            ]
        }
    )

    upload_image(session, settings, "c3750.tar", "flash", [FileEntry("old.bin", "-rwx")], do_format=True)

    assert device.commands == [command]


def test_verify_hash_mismatch_fails(device_session) -> None:
    output = VERIFY_OUTPUT.replace("Computed Hash   MD5 : 0A1B", "Computed Hash   MD5 : FFFF")
    session, _ = device_session({"verify flash:c2960-lanbasec.bin": [output]})

    with pytest.raises(DialogueFailed):
        verify_image(session, "flash", "c2960-lanbasec.bin")


def test_verify_times_out_despite_progress(clock, scripted_channel) -> None:
    session = Session("sw1", scripted_channel([(5, ".")] * 20), "sw1#", clock=clock)

    with pytest.raises(DialogueTimeout):
        verify_image(session, "flash", "c2960-lanbasec.bin")

    assert clock.now == pytest.approx(30)


def test_reload_declines_save_and_confirms(device_session) -> None:
    session, device = device_session(
        {
            "reload": [
                "System configuration has been modified. Save? [yes/no]: ",
                "Proceed with reload? [confirm]",
                None,
            ]
        }
    )

    reload_device(session)

    assert device.replies == ["no\r", "\r"]


@pytest.mark.parametrize(
    ("settings", "expected"),
    [
        (UpgradeSettings(server="10.0.0.5"), "tftp://10.0.0.5/x.bin"),
        (UpgradeSettings(server="10.0.0.5", source_dir="/ios/"), "tftp://10.0.0.5/ios/x.bin"),
        (UpgradeSettings(protocol="scp", server="admin@10.0.0.5"), "scp://admin@10.0.0.5/x.bin"),
        (UpgradeSettings(), "tftp:x.bin"),
    ],
)
def test_source_url(settings: UpgradeSettings, expected: str) -> None:
    assert source_url(settings, "x.bin") == expected


def test_verify_resolves_on_dotted_prompt(clock, fake_device) -> None:
    device = fake_device(
        {"verify flash:c2960-lanbasec.bin": [VERIFY_OUTPUT]}, prompt="core-rtr.lab#", banner=""
    )
    device.pending = ""
    session = Session("core-rtr.lab", device, "core-rtr.lab#", clock=clock)

    verify_image(session, "flash", "c2960-lanbasec.bin")

    assert device.commands == ["verify flash:c2960-lanbasec.bin"]
    assert clock.now < 1
