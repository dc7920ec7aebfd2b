"""
macsetup — CLI entrypoint.

Usage:
    macsetup --help
    macsetup config check
    macsetup plan
    macsetup run --dry-run
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from macsetup import __version__
from macsetup.core.models.plan import ActionOutcome, PlanAction
from macsetup.core.observability.logging_config import mask_secret, setup_logging

_STATUS_COLORS = {"ok": "green", "partial": "yellow", "failed": "red", "interrupted": "yellow"}


@click.group()
@click.version_option(version=__version__, prog_name="macsetup")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to macsetup.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """macsetup — bring a Mac to its declared state."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("MACSETUP_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("MACSETUP_LOG_FILE"),
        log_file_level=os.environ.get("MACSETUP_LOG_FILE_LEVEL"),
    )


@cli.group()
def config() -> None:
    """Machine configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate macsetup.yml."""
    from macsetup.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)
        return

    if result.valid:
        desired = result.desired
        assert desired is not None  # guaranteed when valid
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   File: {result.config_path}")
        click.echo(f"   Packages: {len(desired.packages)}")
        click.echo(f"   Settings: {len(desired.settings)}")
        click.echo(f"   Dock actions: {len(desired.dock)}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)

    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def probe(as_json: bool) -> None:
    """Show which external tools are available."""
    from macsetup.core.engine.probe import probe_capabilities
    from macsetup.core.models.capabilities import TOOL_BINARIES

    capabilities = probe_capabilities()

    if as_json:
        click.echo(json.dumps(capabilities.to_dict(), indent=2))
        return

    click.secho("\n🔍 Tools", fg="cyan", bold=True)
    for name, binary in TOOL_BINARIES.items():
        path = capabilities.path(name)
        if path:
            click.secho(f"   ✓ {name} ", fg="green", nl=False)
            click.echo(f"→ {path}")
        else:
            click.secho(f"   ✗ {name} ", fg="red", nl=False)
            click.echo(f"({binary} not found)")
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--mock", is_flag=True, help="Use mock providers (no real tools).")
@click.pass_context
def plan(ctx: click.Context, as_json: bool, mock: bool) -> None:
    """Show what a run would do, without doing it."""
    from macsetup.core.use_cases.run import prepare_run

    result = prepare_run(config_path=ctx.obj.get("config_path"), mock_mode=mock)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    the_plan = result.plan
    assert the_plan is not None

    click.secho(f"\n📋 Plan {the_plan.operation_id}", fg="cyan", bold=True)
    click.echo(
        f"   Actions: {the_plan.total} | "
        f"Pending: {len(the_plan.pending)} | "
        f"Skipped: {len(the_plan.skipped)}"
    )
    click.echo()

    for action in the_plan.actions:
        lock = " 🔒" if action.requires_privilege and action.pending else ""
        if action.pending:
            click.secho(f"   • {action.id}", fg="white", nl=False)
            click.echo(lock)
        else:
            click.secho(f"   ⊘ {action.id} ", fg="yellow", nl=False)
            click.echo(f"({_reason_text(action.skip_reason, action.detail)})")

    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--dry-run", is_flag=True, help="Plan and report, change nothing.")
@click.option("--mock", is_flag=True, help="Use mock providers (no real tools).")
@click.option("--no-sudo", is_flag=True, help="Never ask for a password; privileged actions fail.")
@click.pass_context
def run(
    ctx: click.Context,
    as_json: bool,
    dry_run: bool,
    mock: bool,
    no_sudo: bool,
) -> None:
    """Provision this machine from macsetup.yml.

    Examples:

        macsetup run

        macsetup run --dry-run

        macsetup -c ~/dotfiles/macsetup.yml run --no-sudo
    """
    from macsetup.core.use_cases.run import run_provisioning

    quiet = ctx.obj.get("quiet", False)

    credential_prompt = None if (no_sudo or mock) else _prompt_password

    on_outcome = None if as_json else _print_outcome

    if not as_json and not quiet:
        mode_label = "[dry-run] " if dry_run else "[mock] " if mock else ""
        click.secho(f"\n⚡ {mode_label}macsetup run", fg="cyan", bold=True)
        click.echo()

    result = run_provisioning(
        config_path=ctx.obj.get("config_path"),
        dry_run=dry_run,
        mock_mode=mock,
        no_sudo=no_sudo,
        credential_prompt=credential_prompt,
        on_outcome=on_outcome,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)
        return

    if result.interrupted:
        click.secho(f"⚠️  {result.error}", fg="yellow")
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    report = result.report
    assert report is not None

    # Summary
    click.echo()
    if report.interrupted:
        click.secho("   ⚠️  Interrupted, remaining actions were not attempted", fg="yellow")

    for warning in report.warnings:
        click.secho(f"   ⚠️  {warning}", fg="yellow")

    failures = report.failures()
    if failures:
        click.echo()
        click.secho(f"   Failed ({len(failures)}):", fg="red", bold=True)
        for entry in failures:
            click.echo(f"     ✗ {entry.action.id}: {_reason_text(entry.outcome.reason, entry.outcome.detail)}")

    skips = report.skips()
    if skips:
        click.echo()
        click.secho(f"   Skipped ({len(skips)}):", fg="yellow", bold=True)
        for entry in skips:
            click.echo(f"     ⊘ {entry.action.id}: {_reason_text(entry.outcome.reason, entry.outcome.detail)}")

    click.echo()
    click.secho(
        f"   Result: {report.succeeded} succeeded, {report.failed} failed, "
        f"{report.skipped} skipped of {report.total}",
        fg=_STATUS_COLORS.get(report.status, "white"),
        bold=True,
    )
    click.echo()

    sys.exit(report.exit_code)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--limit", "-n", default=10, type=int, help="Number of runs to show.")
def history(as_json: bool, limit: int) -> None:
    """Show recent provisioning runs."""
    from macsetup.core.persistence.audit import AuditWriter

    writer = AuditWriter()
    entries = writer.read_recent(limit)

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        click.echo(f"No runs recorded in {writer.path}")
        return

    click.secho(f"\n📜 Recent runs ({writer.path})", fg="cyan", bold=True)
    for entry in reversed(entries):
        click.echo(f"   {entry.timestamp}  ", nl=False)
        click.secho(f"{entry.status:<11}", fg=_STATUS_COLORS.get(entry.status, "white"), nl=False)
        click.echo(
            f" {entry.actions_succeeded}✓ {entry.actions_failed}✗ "
            f"{entry.actions_skipped}⊘  ({entry.duration_ms}ms)"
        )
        for err in entry.errors:
            click.echo(f"     │ {err}")
    click.echo()


@cli.command("mount-share")
@click.option("--server", prompt="Server", help="SMB server host name or address.")
@click.option("--username", prompt="Username", help="Account on the server.")
@click.option("--share", prompt="Share", help="Share name (mounted at /Volumes/<share>).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def mount_share_cmd(server: str, username: str, share: str, as_json: bool) -> None:
    """Mount an SMB network share."""
    from macsetup.core.use_cases.mount_share import mount_share

    password = click.prompt("Password", hide_input=True, err=True)
    mask_secret(password)
    result = mount_share(server, username, password, share)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    if result.mounted:
        click.secho(f"✅ Mounted {result.url} at {result.mount_point}", fg="green", bold=True)
    else:
        click.secho(f"⚠️  {result.warning}", fg="yellow")


# ── Helpers ─────────────────────────────────────────────────────


def _prompt_password() -> str:
    if os.geteuid() == 0:
        return ""
    try:
        password = click.prompt("Password (sudo)", hide_input=True, err=True)
    except click.Abort:
        # Ctrl-C / EOF at the prompt: the run reports every action interrupted
        raise KeyboardInterrupt from None
    mask_secret(password)
    return password


def _print_outcome(action: PlanAction, outcome: ActionOutcome) -> None:
    if outcome.status == "succeeded":
        click.secho(f"   ✓ {action.id}", fg="green")
    elif outcome.status == "failed":
        click.secho(f"   ✗ {action.id} ", fg="red", nl=False)
        click.echo(f"({outcome.reason})")
        if outcome.detail:
            for line in outcome.detail.split("\n")[:5]:
                click.echo(f"     │ {line}")
    else:
        click.secho(f"   ⊘ {action.id} ", fg="yellow", nl=False)
        click.echo(f"({outcome.reason})")


def _reason_text(reason: str | None, detail: str = "") -> str:
    text = reason or "skipped"
    if detail:
        first_line = detail.strip().split("\n")[0]
        text = f"{text}: {first_line}"
    return text


if __name__ == "__main__":
    cli()
