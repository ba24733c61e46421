"""Settings loading shared by the subcommands."""

from __future__ import annotations

from pathlib import Path

import click

from utctime.config import ConfigError, ServerSettings


def load_settings(config_path: Path | None) -> ServerSettings:
    """Environment settings, overlaid with *config_path* when given."""
    try:
        settings = ServerSettings.from_env()
        if config_path is not None:
            settings = ServerSettings.from_yaml(config_path, base=settings)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    return settings


config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML settings file overlaid on the environment.",
)
