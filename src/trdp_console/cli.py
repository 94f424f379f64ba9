#!/usr/bin/env python3
"""Command-line operator console for the TRDP backend, built with Typer."""

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

import typer
from typing_extensions import Annotated

from . import __version__
from .console import Console
from .errors import ApiError, PermissionDeniedError
from .network import parse_multicast_groups
from .types import ConfigurationDocument, NetworkConfiguration, preview_payload

app = typer.Typer(
    name="trdp-console",
    help="Operator console for a TRDP communication backend (configs, network, traffic, logs).",
    no_args_is_help=True,
)
configs_app = typer.Typer(help="TRDP XML configuration documents.", no_args_is_help=True)
network_app = typer.Typer(help="Network interface settings.", no_args_is_help=True)
traffic_app = typer.Typer(help="Live PD/MD traffic.", no_args_is_help=True)
logs_app = typer.Typer(help="Protocol and application logs.", no_args_is_help=True)
app.add_typer(configs_app, name="configs")
app.add_typer(network_app, name="network")
app.add_typer(traffic_app, name="traffic")
app.add_typer(logs_app, name="logs")

logger = logging.getLogger(__name__)

DEFAULT_URL = "http://127.0.0.1:8080"
DEFAULT_SESSION_FILE = "~/.trdp_console_session.json"

# ============================================================================
# Shared options and helpers
# ============================================================================

UrlOption = Annotated[
    str,
    typer.Option("--url", help="Backend base URL", envvar="TRDP_CONSOLE_URL"),
]
TimeoutOption = Annotated[
    float,
    typer.Option("--timeout", "-t", help="Request timeout in seconds", envvar="TRDP_CONSOLE_TIMEOUT"),
]
SessionFileOption = Annotated[
    str,
    typer.Option("--session-file", help="Where the login snapshot is kept", envvar="TRDP_CONSOLE_SESSION"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable debug logging"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbose flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if not verbose else "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def open_console(url: str, timeout: float, session_file: str) -> Console:
    """Create a Console whose login survives between invocations."""
    return Console.connect(url, snapshot_path=Path(session_file), timeout=timeout)


def ensure_logged_in(console: Console, action: str) -> None:
    """Resolve the stored identity; anonymous use of a protected view raises PermissionDeniedError."""
    console.session.initialize()
    console.session.require_login(action)


@contextmanager
def cli_errors(verbose: bool) -> Iterator[None]:
    """Map library errors to exit codes: 2 usage/permission, 3 API, 4 unexpected."""
    try:
        yield
    except typer.Exit:
        raise
    except PermissionDeniedError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)
    except ValueError as e:
        typer.echo(f"Error: Invalid value: {e}", err=True)
        raise typer.Exit(2)
    except ApiError as e:
        status = f" (HTTP {e.status})" if e.status is not None else ""
        typer.echo(f"Error: API error{status}: {e}", err=True)
        raise typer.Exit(3)
    except Exception as e:
        typer.echo(f"Error: Unexpected error: {e}", err=True)
        if verbose:
            import traceback
            traceback.print_exc()
        raise typer.Exit(4)


def emit_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2))


def format_config_row(config: ConfigurationDocument) -> str:
    """One line per document for list output."""
    return f"{config.id:>5}  {config.validation_status:<8}  {config.created_at or '—':<20}  {config.name}"


def format_network(config: NetworkConfiguration) -> list[str]:
    groups = ", ".join(config.multicast_groups) if config.multicast_groups else "—"
    return [
        f"Interface:        {config.interface_name or '—'}",
        f"Local IP:         {config.local_ip or '—'}",
        f"Multicast groups: {groups}",
        f"PD port:          {config.pd_port}",
        f"MD port:          {config.md_port}",
    ]


# ============================================================================
# Session commands
# ============================================================================


@app.command()
def info(
    url: UrlOption = DEFAULT_URL,
    timeout: TimeoutOption = 10.0,
    session_file: SessionFileOption = DEFAULT_SESSION_FILE,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
    check: Annotated[bool, typer.Option("--check", help="Also query the backend health endpoint")] = False,
) -> None:
    """
    Show package version and backend URL, and optionally test connectivity.
    """
    setup_logging(verbose)

    info_data: dict[str, Any] = {
        "version": __version__,
        "url": url,
    }

    if check:
        try:
            with open_console(url, timeout, session_file) as console:
                console.gateway.health()
                info_data["connectivity"] = {"status": "connected"}
        except ApiError as e:
            info_data["connectivity"] = {"status": "failed", "error": str(e)}

    if json_output:
        emit_json(info_data)
    else:
        typer.echo(f"trdp-console version: {info_data['version']}")
        typer.echo(f"Backend: {url}")
        if "connectivity" in info_data:
            if info_data["connectivity"]["status"] == "connected":
                typer.echo("Connectivity: OK")
            else:
                typer.echo(f"Connectivity: FAILED - {info_data['connectivity']['error']}")


@app.command()
def login(
    username: Annotated[str, typer.Argument(help="Account name")],
    password: Annotated[str, typer.Option("--password", prompt=True, hide_input=True, help="Account password")],
    url: UrlOption = DEFAULT_URL,
    timeout: TimeoutOption = 10.0,
    session_file: SessionFileOption = DEFAULT_SESSION_FILE,
    verbose: VerboseOption = False,
) -> None:
    """Log in and remember the session for later commands."""
    setup_logging(verbose)

    with cli_errors(verbose):
        with open_console(url, timeout, session_file) as console:
            identity = console.session.login(username, password)
            console.save_cookies()
            typer.echo(f"OK: Logged in as {identity.username} ({identity.role})")


@app.command()
def logout(
    url: UrlOption = DEFAULT_URL,
    timeout: TimeoutOption = 10.0,
    session_file: SessionFileOption = DEFAULT_SESSION_FILE,
    verbose: VerboseOption = False,
) -> None:
    """End the backend session and forget the local identity."""
    setup_logging(verbose)

    with cli_errors(verbose):
        with open_console(url, timeout, session_file) as console:
            try:
                console.session.logout()
            finally:
                console.save_cookies()
            typer.echo("OK: Logged out")


@app.command()
def whoami(
    url: UrlOption = DEFAULT_URL,
    timeout: TimeoutOption = 10.0,
    session_file: SessionFileOption = DEFAULT_SESSION_FILE,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """Show the current identity (cached, or fetched from the backend)."""
    setup_logging(verbose)

    with cli_errors(verbose):
        with open_console(url, timeout, session_file) as console:
            identity = console.session.initialize()
            if json_output:
                emit_json({"user": identity.to_dict() if identity else None})
            elif identity is None:
                typer.echo("Not logged in")
            else:
                typer.echo(f"Username: {identity.username}")
                typer.echo(f"Role:     {identity.role}")
                if identity.created_at:
                    typer.echo(f"Created:  {identity.created_at}")


@app.command()
def register(
    username: Annotated[str, typer.Argument(help="New account name")],
    password: Annotated[str, typer.Option("--password", prompt=True, hide_input=True, confirmation_prompt=True)],
    role: Annotated[str, typer.Option("--role", help="Role for the new account (admin or dev)")] = "dev",
    url: UrlOption = DEFAULT_URL,
    timeout: TimeoutOption = 10.0,
    session_file: SessionFileOption = DEFAULT_SESSION_FILE,
    verbose: VerboseOption = False,
) -> None:
    """Create a backend account (requires an admin login)."""
    setup_logging(verbose)

    with cli_errors(verbose):
        with open_console(url, timeout, session_file) as console:
            console.session.initialize()
            console.session.register(username, password, role)
            typer.echo(f"OK: Registered {username} ({role})")


# ============================================================================
# Configuration commands
# ============================================================================


@configs_app.command("list")
def configs_list(
    url: UrlOption = DEFAULT_URL,
    timeout: TimeoutOption = 10.0,
    session_file: SessionFileOption = DEFAULT_SESSION_FILE,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """List stored configuration documents."""
    setup_logging(verbose)

    with cli_errors(verbose):
        with open_console(url, timeout, session_file) as console:
            ensure_logged_in(console, "configurations")
            configs = console.configs.list()
            if json_output:
                emit_json([c.to_dict() for c in configs])
            elif not configs:
                typer.echo("No configurations stored")
            else:
                for config in configs:
                    typer.echo(format_config_row(config))


@configs_app.command("show")
def configs_show(
    config_id: Annotated[int, typer.Argument(help="Configuration id")],
    url: UrlOption = DEFAULT_URL,
    timeout: TimeoutOption = 10.0,
    session_file: SessionFileOption = DEFAULT_SESSION_FILE,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """Show one configuration document including its XML."""
    setup_logging(verbose)

    with cli_errors(verbose):
        with open_console(url, timeout, session_file) as console:
            ensure_logged_in(console, "configurations")
            doc = console.configs.load(config_id)
            if json_output:
                emit_json(doc.to_dict())
            else:
                typer.echo(f"Name:       {doc.name}")
                typer.echo(f"Status:     {doc.validation_status}")
                typer.echo(f"Created:    {doc.created_at or '—'}")
                typer.echo("")
                typer.echo(doc.xml or "")


@configs_app.command("create")
def configs_create(
    name: Annotated[str, typer.Argument(help="Configuration name")],
    xml_file: Annotated[Path, typer.Argument(help="Path to the TRDP XML file", exists=True, dir_okay=False)],
    url: UrlOption = DEFAULT_URL,
    timeout: TimeoutOption = 10.0,
    session_file: SessionFileOption = DEFAULT_SESSION_FILE,
    verbose: VerboseOption = False,
) -> None:
    """Upload an XML document; the backend reports its validation status."""
    setup_logging(verbose)

    with cli_errors(verbose):
        xml = xml_file.read_text(encoding="utf-8")
        with open_console(url, timeout, session_file) as console:
            ensure_logged_in(console, "configurations")
            doc = console.configs.create(name, xml)
            typer.echo(f"OK: {console.configs.notice} (id {doc.id}, status {doc.validation_status})")
            if console.configs.last_error:
                typer.echo(f"Warning: list refresh failed: {console.configs.last_error}", err=True)


@configs_app.command("activate")
def configs_activate(
    config_id: Annotated[int, typer.Argument(help="Configuration id")],
    url: UrlOption = DEFAULT_URL,
    timeout: TimeoutOption = 10.0,
    session_file: SessionFileOption = DEFAULT_SESSION_FILE,
    verbose: VerboseOption = False,
) -> None:
    """Make a configuration the active one on the backend."""
    setup_logging(verbose)

    with cli_errors(verbose):
        with open_console(url, timeout, session_file) as console:
            ensure_logged_in(console, "configurations")
            console.configs.activate(config_id)
            typer.echo(f"OK: {console.configs.notice}")


@configs_app.command("plan")
def configs_plan(
    config_id: Annotated[int, typer.Argument(help="Configuration id")],
    url: UrlOption = DEFAULT_URL,
    timeout: TimeoutOption = 10.0,
    session_file: SessionFileOption = DEFAULT_SESSION_FILE,
    verbose: VerboseOption = False,
) -> None:
    """Print the PD/MD execution plan the backend derives from a configuration."""
    setup_logging(verbose)

    with cli_errors(verbose):
        with open_console(url, timeout, session_file) as console:
            ensure_logged_in(console, "configurations")
            emit_json(console.configs.plan(config_id))


# ============================================================================
# Network commands
# ============================================================================


@network_app.command("show")
def network_show(
    url: UrlOption = DEFAULT_URL,
    timeout: TimeoutOption = 10.0,
    session_file: SessionFileOption = DEFAULT_SESSION_FILE,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """Show the saved network configuration."""
    setup_logging(verbose)

    with cli_errors(verbose):
        with open_console(url, timeout, session_file) as console:
            ensure_logged_in(console, "network settings")
            config = console.network.load()
            if json_output:
                emit_json({"config": config.to_dict() if config else None})
                return
            if config is None:
                typer.echo("No network configuration saved; defaults shown.")
            for line in format_network(console.network.effective):
                typer.echo(line)


@network_app.command("set")
def network_set(
    interface: Annotated[Optional[str], typer.Option("--interface", help="Interface name")] = None,
    local_ip: Annotated[Optional[str], typer.Option("--local-ip", help="Local IP address")] = None,
    multicast: Annotated[Optional[str], typer.Option("--multicast", help="Multicast groups, comma separated")] = None,
    pd_port: Annotated[Optional[int], typer.Option("--pd-port", help="PD UDP port")] = None,
    md_port: Annotated[Optional[int], typer.Option("--md-port", help="MD UDP port")] = None,
    url: UrlOption = DEFAULT_URL,
    timeout: TimeoutOption = 10.0,
    session_file: SessionFileOption = DEFAULT_SESSION_FILE,
    verbose: VerboseOption = False,
) -> None:
    """
    Update the network configuration. Options not given keep their current
    value (or the default when nothing is saved yet).
    """
    setup_logging(verbose)

    with cli_errors(verbose):
        with open_console(url, timeout, session_file) as console:
            ensure_logged_in(console, "network settings")
            console.network.load()
            current = console.network.effective
            updated = NetworkConfiguration(
                interface_name=interface if interface is not None else current.interface_name,
                local_ip=local_ip if local_ip is not None else current.local_ip,
                multicast_groups=parse_multicast_groups(multicast) if multicast is not None else current.multicast_groups,
                pd_port=pd_port if pd_port is not None else current.pd_port,
                md_port=md_port if md_port is not None else current.md_port,
            )
            console.network.save(updated)
            typer.echo(f"OK: {console.network.notice}")
            for line in format_network(console.network.effective):
                typer.echo(line)


# ============================================================================
# Traffic commands
# ============================================================================


@traffic_app.command("show")
def traffic_show(
    url: UrlOption = DEFAULT_URL,
    timeout: TimeoutOption = 10.0,
    session_file: SessionFileOption = DEFAULT_SESSION_FILE,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """Show outgoing/incoming PD and incoming MD messages."""
    setup_logging(verbose)

    with cli_errors(verbose):
        with open_console(url, timeout, session_file) as console:
            ensure_logged_in(console, "traffic")
            snap = console.traffic.refresh()
            if json_output:
                emit_json({
                    "pd_outgoing": [m.to_dict() for m in snap.pd_outgoing],
                    "pd_incoming": [m.to_dict() for m in snap.pd_incoming],
                    "md_incoming": [m.to_dict() for m in snap.md_incoming],
                })
                return
            for title, items in (("Process Data - Outgoing", snap.pd_outgoing), ("Process Data - Incoming", snap.pd_incoming)):
                typer.echo(title)
                if not items:
                    typer.echo("  (none)")
                for m in items:
                    typer.echo(f"  {m.id:>5}  {m.name:<24}  {preview_payload(m.payload_hex)}  {m.updated_at or '—'}")
            typer.echo("Message Data - Incoming")
            if not snap.md_incoming:
                typer.echo("  (none)")
            for md in snap.md_incoming:
                typer.echo(f"  {md.id:>5}  {md.subject:<24}  {preview_payload(md.payload_hex)}  {md.timestamp or '—'}")


@traffic_app.command("set-payload")
def traffic_set_payload(
    message_id: Annotated[int, typer.Argument(help="Outgoing PD message id")],
    payload_hex: Annotated[str, typer.Argument(help="New payload in hex (no spaces)")],
    url: UrlOption = DEFAULT_URL,
    timeout: TimeoutOption = 10.0,
    session_file: SessionFileOption = DEFAULT_SESSION_FILE,
    verbose: VerboseOption = False,
) -> None:
    """Replace the payload of an outgoing PD message."""
    setup_logging(verbose)

    with cli_errors(verbose):
        with open_console(url, timeout, session_file) as console:
            ensure_logged_in(console, "traffic")
            console.traffic.update_payload(message_id, payload_hex)
            typer.echo(f"OK: {console.traffic.notice}")
            if console.traffic.last_error:
                typer.echo(f"Warning: traffic refresh failed: {console.traffic.last_error}", err=True)


@traffic_app.command("send-md")
def traffic_send_md(
    subject: Annotated[str, typer.Argument(help="MD subject")],
    payload_hex: Annotated[str, typer.Argument(help="Payload in hex")],
    url: UrlOption = DEFAULT_URL,
    timeout: TimeoutOption = 10.0,
    session_file: SessionFileOption = DEFAULT_SESSION_FILE,
    verbose: VerboseOption = False,
) -> None:
    """Send a one-shot MD message."""
    setup_logging(verbose)

    with cli_errors(verbose):
        with open_console(url, timeout, session_file) as console:
            ensure_logged_in(console, "traffic")
            console.traffic.send_md(subject, payload_hex)
            typer.echo(f"OK: {console.traffic.notice}")
            if console.traffic.last_error:
                typer.echo(f"Warning: traffic refresh failed: {console.traffic.last_error}", err=True)


# ============================================================================
# Log commands
# ============================================================================


@logs_app.command("trdp")
def logs_trdp(
    type_filter: Annotated[str, typer.Option("--type", help="ALL, PD or MD")] = "ALL",
    direction: Annotated[str, typer.Option("--direction", help="ALL, IN or OUT")] = "ALL",
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum entries")] = 100,
    url: UrlOption = DEFAULT_URL,
    timeout: TimeoutOption = 10.0,
    session_file: SessionFileOption = DEFAULT_SESSION_FILE,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """Show protocol (PD/MD) log entries."""
    setup_logging(verbose)

    with cli_errors(verbose):
        with open_console(url, timeout, session_file) as console:
            ensure_logged_in(console, "logs")
            entries = console.logs.trdp_logs(type_filter, direction, limit)
            if json_output:
                emit_json([e.to_dict() for e in entries])
            elif not entries:
                typer.echo("No log entries found.")
            else:
                for e in entries:
                    typer.echo(
                        f"{e.timestamp or '—'}  {e.direction:<3}  {e.type:<2}  {e.msg_id:>6}  "
                        f"{e.src_ip or '—'} -> {e.dst_ip or '—'}  {e.payload_preview}"
                    )


@logs_app.command("app")
def logs_app_cmd(
    level: Annotated[str, typer.Option("--level", help="ALL, INFO, WARN or ERROR")] = "ALL",
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum entries")] = 100,
    url: UrlOption = DEFAULT_URL,
    timeout: TimeoutOption = 10.0,
    session_file: SessionFileOption = DEFAULT_SESSION_FILE,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """Show application log entries."""
    setup_logging(verbose)

    with cli_errors(verbose):
        with open_console(url, timeout, session_file) as console:
            ensure_logged_in(console, "logs")
            entries = console.logs.app_logs(level, limit)
            if json_output:
                emit_json([e.to_dict() for e in entries])
            elif not entries:
                typer.echo("No application logs recorded.")
            else:
                for e in entries:
                    typer.echo(f"{e.timestamp or '—'}  {e.level:<5}  {e.message}")


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"trdp-console {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    """trdp-console - operator console for a TRDP communication backend."""
    pass


if __name__ == "__main__":
    app()
