"""
WMAdmin CLI
===========
Command-line entry point for serving the admin front end and for checking
the resolved configuration and engine launch arguments.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv

from wmadmin import __version__
from wmadmin.config import CONFIG_FILE, LOGS_DIR, WMAdminConfig, load_config
from wmadmin.core.errors import ConfigurationError, ProvisioningError
from wmadmin.core.lifecycle import build_args, validate_options
from wmadmin.ui import (
    print_error,
    print_info,
    print_success,
    print_warning,
    show_banner,
    show_config_status,
    show_engine_args,
    setup_logging,
)

load_dotenv()


# ── Main CLI ─────────────────────────────────────────────────────────────────

@click.group()
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False, path_type=Path),
              help="Path to a config.yaml (defaults to the user config dir)")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.version_option(__version__, prog_name="wmadmin")
@click.pass_context
def main(ctx, config_path: Optional[Path], verbose: bool):
    """WMAdmin — admin front end for an embedded WireMock"""
    ctx.ensure_object(dict)
    config = load_config(config_path)
    if verbose:
        config.logging.level = "DEBUG"
    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path or CONFIG_FILE


@main.command()
@click.option("--host", default=None, help="Host to bind the admin server")
@click.option("--port", default=None, type=int, help="Port for the admin server")
@click.option("--embedded/--no-embedded", default=None, help="Launch the embedded WireMock")
@click.option("--jar", default=None, help="Path to wiremock-standalone.jar")
@click.pass_context
def serve(ctx, host, port, embedded, jar):
    """Start the embedded engine and serve the admin API."""
    config: WMAdminConfig = ctx.obj["config"]
    if host:
        config.server.host = host
    if port:
        config.server.port = port
    if embedded is not None:
        config.wiremock.embedded.enabled = embedded
    if jar:
        config.wiremock.embedded.jar = jar

    setup_logging(
        config.logging.level,
        LOGS_DIR / "wmadmin.log" if config.logging.to_file else None,
    )
    show_banner()
    if not config.wiremock.embedded.enabled:
        print_warning(f"Embedded engine disabled, relaying to {config.wiremock.base_url}")

    from wmadmin.server.app import serve as run_server

    try:
        run_server(config)
    except (ConfigurationError, ProvisioningError) as e:
        print_error(f"Startup aborted: {e}")
        sys.exit(2)
    except KeyboardInterrupt:
        print_info("Stopped.")


@main.command("config")
@click.pass_context
def show_config(ctx):
    """Show the resolved configuration."""
    cfg: WMAdminConfig = ctx.obj["config"]
    embedded = cfg.wiremock.embedded
    show_config_status({
        "Admin API": cfg.wiremock.base_url,
        "Timeout (s)": cfg.wiremock.timeout,
        "Max response (bytes)": cfg.wiremock.max_response_bytes,
        "Embedded": embedded.enabled,
        "Java": embedded.java,
        "Jar": embedded.jar,
        "Engine port": embedded.options.get("port"),
        "Root dir": embedded.options.get("root-dir"),
        "Listen": f"{cfg.server.host}:{cfg.server.port}{cfg.server.api_prefix}",
        "Log level": cfg.logging.level,
    })
    print_info(f"Config file: {ctx.obj['config_path']}")


@main.command("engine-args")
@click.pass_context
def engine_args(ctx):
    """Validate launch options and print the engine's arguments."""
    cfg: WMAdminConfig = ctx.obj["config"]
    options = cfg.wiremock.embedded.launch_options()
    try:
        validate_options(options)
    except ConfigurationError as e:
        print_error(str(e))
        sys.exit(2)
    show_engine_args(build_args(options))
    print_success(f"Launch options valid (port {options.port}, root-dir {options.root_dir})")


if __name__ == "__main__":
    main()
