#!/usr/bin/env python3
"""Main CLI entry point for DevTools Monitor using Typer.

The watch command launches Chromium, opens a DevTools session on a fresh
page, navigates, waits for the network to settle and prints the session
summary (or the JSON snapshot).
"""

import asyncio
import json
import logging
from enum import IntEnum
from pathlib import Path
from typing import List, Optional

import typer
from playwright.async_api import Error as PlaywrightError
from typing_extensions import Annotated

from .. import __version__
from ..models.session import Domain
from ..monitor.browser import BrowserConfig, BrowserLauncher
from ..monitor.config import DevToolsConfig, load_config
from ..monitor.exceptions import ConfigurationError, DevToolsNotSupportedError
from ..monitor.session import DevToolsSession


class ExitCode(IntEnum):
    """CLI exit codes for scripting and CI pipelines."""
    SUCCESS = 0             # Page loaded and session summarised
    NAVIGATION_FAILURE = 1  # Navigation or browser launch failed
    NOT_SUPPORTED = 2       # Browser exposes no DevTools protocol session
    CONFIG_ERROR = 3        # Configuration file or option error


app = typer.Typer(
    name="devtools-monitor",
    help="DevTools Monitor - browser remote-debugging protocol session manager",
    add_completion=False,
)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_config(
    config_file: Optional[Path],
    domains: Optional[List[str]],
    filters: Optional[List[str]],
    blocks: Optional[List[str]],
    intercept: bool,
) -> DevToolsConfig:
    """Load the config file (or defaults) and apply command-line overrides.

    Raises:
        ConfigurationError: If the file or an option is invalid
    """
    config = load_config(config_file)

    overrides = {}
    if domains:
        try:
            overrides['domains'] = [Domain.parse(d) for d in domains]
        except ValueError as e:
            raise ConfigurationError(str(e))
    if filters:
        overrides['filter_urls'] = list(filters)
    if blocks:
        overrides['block_urls'] = list(blocks)
    if intercept:
        overrides['enable_interception'] = True

    if not overrides:
        return config
    return config.model_copy(update=overrides)


async def watch_page(
    url: str,
    config: DevToolsConfig,
    headless: bool = True,
    idle_ms: int = 500,
    timeout_ms: int = 30000,
    as_json: bool = False,
) -> ExitCode:
    """Monitor one page load and print the result."""
    launcher = BrowserLauncher(BrowserConfig(headless=headless))
    try:
        await launcher.start()
    except PlaywrightError as e:
        typer.echo(f"❌ Failed to launch browser: {e}", err=True)
        return ExitCode.NAVIGATION_FAILURE

    try:
        async with launcher.page() as page:
            async with DevToolsSession(config) as session:
                await session.open(page)
                report = await session.start_monitoring()
                for domain in report.failed:
                    typer.echo(
                        f"⚠️  {domain.value} domain unavailable: {report.errors.get(domain, 'unknown error')}",
                        err=True
                    )

                try:
                    await page.goto(url, wait_until="load", timeout=timeout_ms)
                except PlaywrightError as e:
                    typer.echo(f"❌ Navigation to {url} failed: {e}", err=True)
                    return ExitCode.NAVIGATION_FAILURE

                await session.wait_for_network_idle(idle_ms=idle_ms, timeout_ms=timeout_ms)

                if as_json:
                    typer.echo(json.dumps(session.snapshot().to_report(), indent=2))
                else:
                    typer.echo(session.summary())

    except DevToolsNotSupportedError as e:
        typer.echo(f"❌ {e.message}", err=True)
        return ExitCode.NOT_SUPPORTED
    finally:
        await launcher.stop()

    return ExitCode.SUCCESS


@app.callback()
def main():
    """
    DevTools Monitor - watch a page through the browser's remote-debugging protocol.
    """
    pass


@app.command(name="version")
def show_version():
    """Show version information."""
    typer.echo(f"DevTools Monitor v{__version__}")


@app.command()
def watch(
    url: Annotated[
        str,
        typer.Argument(help="URL to open and monitor")
    ],

    domain: Annotated[
        Optional[List[str]],
        typer.Option("--domain", "-d", help="Domain to enable (repeatable, default: all monitoring domains)")
    ] = None,

    url_filter: Annotated[
        Optional[List[str]],
        typer.Option("--filter", "-f", help="Only log URLs containing this substring (repeatable)")
    ] = None,

    block: Annotated[
        Optional[List[str]],
        typer.Option("--block", "-b", help="URL pattern to block, e.g. '*.png' (repeatable)")
    ] = None,

    intercept: Annotated[
        bool,
        typer.Option("--intercept", help="Pause and auto-continue every request")
    ] = False,

    headed: Annotated[
        bool,
        typer.Option("--headed", help="Run browser with GUI")
    ] = False,

    config_file: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to monitor configuration YAML")
    ] = None,

    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the metrics snapshot as JSON")
    ] = False,

    idle_ms: Annotated[
        int,
        typer.Option("--idle-ms", help="Quiet period that counts as network idle")
    ] = 500,

    timeout_ms: Annotated[
        int,
        typer.Option("--timeout-ms", help="Navigation and idle wait timeout")
    ] = 30000,

    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Debug logging")
    ] = False,
):
    """
    Open URL in Chromium and report what the DevTools protocol observed.
    """
    configure_logging(verbose)

    try:
        config = build_config(config_file, domain, url_filter, block, intercept)
    except ConfigurationError as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)

    exit_code = asyncio.run(watch_page(
        url,
        config,
        headless=not headed,
        idle_ms=idle_ms,
        timeout_ms=timeout_ms,
        as_json=as_json,
    ))
    raise typer.Exit(code=exit_code.value)


@app.command()
def validate_config(
    config_file: Annotated[
        Path,
        typer.Argument(help="Path to configuration file to validate")
    ],

    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Verbose validation output")
    ] = False,
):
    """
    Validate a monitor configuration file without opening a browser.
    """
    try:
        config = load_config(config_file)
    except ConfigurationError as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)

    typer.echo(f"✅ Configuration file {config_file} is valid")

    if verbose:
        typer.echo(f"   Environment: {config.environment}")
        typer.echo(f"   Domains: {', '.join(d.value for d in config.domains)}")
        typer.echo(f"   Filter: {', '.join(config.filter_urls) or 'none'}")
        typer.echo(f"   Blocked URLs: {', '.join(config.block_urls) or 'none'}")
        typer.echo(f"   Interception: {'on' if config.enable_interception else 'off'}")


def cli_main():
    """Entry point for console script."""
    app()


if __name__ == "__main__":
    app()
