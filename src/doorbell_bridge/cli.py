"""
Doorbell Bridge CLI - Main entry point.

Commands:
    doorbell-bridge run           - Run the bridge until SIGINT/SIGTERM
    doorbell-bridge check-config  - Validate configuration and print it
    doorbell-bridge version       - Show the version
"""
import asyncio
import logging

import typer
from pydantic import ValidationError

from . import __version__
from .bridge import Bridge
from .core.config import Settings, describe_settings_error, load_settings

app = typer.Typer(
    name="doorbell-bridge",
    help="Doorbell Bridge - forward door station events to MQTT.",
    no_args_is_help=True,
)

SECRET_FIELDS = {"password", "mqtt_password"}


def configure_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # httpx logs every request at INFO, including each health probe
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load_settings_or_exit() -> Settings:
    try:
        return load_settings()
    except ValidationError as e:
        for message in describe_settings_error(e):
            typer.echo(message, err=True)
        raise typer.Exit(1)


@app.command()
def run(
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
):
    """
    Run the bridge until interrupted.
    """
    settings = _load_settings_or_exit()
    configure_logging(debug or settings.debug)

    bridge = Bridge(settings)
    raise typer.Exit(asyncio.run(bridge.run()))


@app.command("check-config")
def check_config():
    """
    Validate configuration and print the effective values (secrets hidden).
    """
    settings = _load_settings_or_exit()
    for name, value in settings.model_dump().items():
        if name in SECRET_FIELDS:
            value = "********"
        typer.echo(f"{name.upper()}={value}")


@app.command()
def version():
    """
    Show the Doorbell Bridge version.
    """
    typer.echo(f"Doorbell Bridge v{__version__}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
