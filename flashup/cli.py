"""Typer CLI entrypoint."""

from __future__ import annotations

import logging

import typer

from flashup.core.errors import FlashupError
from flashup.core.service import UpgradeService

app = typer.Typer(help="Firmware upgrades for network devices over interactive CLI sessions")


def _build_service() -> UpgradeService:
    service = UpgradeService()
    for warning in service.load_warnings:
        typer.echo(f"Warning: {warning}", err=True)
    return service


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(message)s",
    )


@app.command("upgrade")
def upgrade(
    hosts: list[str] = typer.Argument(..., help="Device host names"),
    image: str | None = typer.Option(None, "--image", help="Target image file name"),
    device: str | None = typer.Option(None, "--device", help="Filesystem receiving the image"),
    boot_device: str | None = typer.Option(None, "--boot-device", help="Boot filesystem"),
    boot_image: str | None = typer.Option(None, "--boot-image", help="Boot image file name"),
    protocol: str | None = typer.Option(None, "--protocol", help="Transfer protocol (tftp, ftp, scp, ...)"),
    server: str | None = typer.Option(None, "--server", help="Image server address"),
    source_dir: str | None = typer.Option(None, "--source-dir", help="Image directory on the server"),
    min_flash: str | None = typer.Option(None, "--min-flash", help="Minimum flash size, e.g. 32768K"),
    login_command: str | None = typer.Option(
        None, "--login-command", help="Login helper command; {host} is substituted"
    ),
    archive: bool | None = typer.Option(None, "--archive/--no-archive", help="Use archive download-sw"),
    format_fs: bool | None = typer.Option(None, "--format/--no-format", help="Format before copying"),
    delete: bool | None = typer.Option(None, "--delete/--no-delete", help="Delete old files before copying"),
    squeeze: bool | None = typer.Option(None, "--squeeze/--no-squeeze", help="Squeeze after deleting"),
    verify: bool | None = typer.Option(None, "--verify/--no-verify", help="Verify the copied image"),
    reload: bool | None = typer.Option(None, "--reload/--no-reload", help="Reload after an upgrade"),
    force: bool = typer.Option(False, "--force", help="Upload even if the image is already staged"),
    non_recursive: bool = typer.Option(
        False, "--non-recursive", help="Do not descend into directories"
    ),
    fail_fast: bool = typer.Option(False, "--fail-fast", help="Stop at the first failed host"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress"),
) -> None:
    """Upgrade HOSTS one after another."""
    _configure_logging(verbose)
    overrides = {
        "image": image,
        "device": device,
        "boot_device": boot_device,
        "boot_image": boot_image,
        "protocol": protocol,
        "server": server,
        "source_dir": source_dir,
        "min_flash": min_flash,
        "login_command": login_command,
        "archive": archive,
        "format": format_fs,
        "delete": delete,
        "squeeze": squeeze,
        "verify": verify,
        "reload": reload,
        "force": force or None,
        "non_recursive": non_recursive or None,
    }
    failed = False
    try:
        service = _build_service()
        for outcome in service.iter_run(hosts, overrides, fail_fast=fail_fast):
            line = f"{outcome.host}: {outcome.status}"
            if outcome.detail:
                line += f" ({outcome.detail})"
            typer.echo(line)
            failed = failed or outcome.status == "failed"
    except FlashupError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None

    if failed:
        raise typer.Exit(code=1)


@app.command("inspect")
def inspect(
    host: str,
    login_command: str | None = typer.Option(
        None, "--login-command", help="Login helper command; {host} is substituted"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress"),
) -> None:
    """Show the running image, family, and matched profile of HOST."""
    _configure_logging(verbose)
    try:
        service = _build_service()
        version, profile = service.inspect(host, {"login_command": login_command})
    except FlashupError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None

    typer.echo(f"{host}: {version.family} ({version.processor})")
    typer.echo(f"  image: {version.image}")
    typer.echo(f"  flash: {version.flash_size}")
    typer.echo(f"  profile: {profile.id if profile else '<no-match>'}")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
