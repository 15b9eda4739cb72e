"""Settings read from ``tablegrant.toml``.

Example ``tablegrant.toml``::

    [tablegrant]
    default_db = "postgres"
    secondary_conn_name = "reporting"
    output_format = "json"
    save_implies_update = false
    max_file_chars = 500000

Command-line options take precedence over every value here.
"""

import tomllib
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError
from rich.console import Console

from tablegrant.global_models import Database

CONFIG_FILENAME = "tablegrant.toml"
CONFIG_SECTION = "tablegrant"

console = Console(stderr=True)


class ConfigSettings(BaseModel):
    """Defaults for the ``analyze`` and ``models`` commands.

    A field left as None was not set in the file.
    """

    default_db: Optional[Database] = Field(
        None, description="Database rows target when a file gives no signal"
    )
    secondary_conn_name: Optional[str] = Field(
        None, description="Connection name that routes a file to the other database"
    )
    output_format: Optional[str] = Field(None, description="'text', 'json' or 'csv'")
    save_implies_update: Optional[bool] = Field(
        None, description="Whether repository save() also grants UPDATE"
    )
    max_file_chars: Optional[int] = Field(
        None, gt=0, description="Files longer than this are skipped"
    )


def find_config_file(start_path: Optional[Path] = None) -> Optional[Path]:
    """Return ``tablegrant.toml`` in ``start_path`` (default: cwd) if it is a file."""
    config_path = (start_path or Path.cwd()) / CONFIG_FILENAME
    return config_path if config_path.is_file() else None


def _fallback(message: str) -> ConfigSettings:
    console.print(f"[yellow]Warning:[/yellow] {message}")
    console.print("[yellow]Using default settings[/yellow]")
    return ConfigSettings()


def load_config(config_path: Optional[Path] = None) -> ConfigSettings:
    """
    Read the ``[tablegrant]`` section of a config file.

    Without ``config_path`` the current directory is searched. A missing
    file gives empty settings silently; an unreadable file, malformed TOML
    or an invalid value gives empty settings and a warning on stderr. Keys
    tablegrant does not know are ignored.

    Args:
        config_path: Explicit config file to read

    Returns:
        ConfigSettings, never raising
    """
    config_path = config_path or find_config_file()
    if config_path is None:
        return ConfigSettings()

    try:
        data = tomllib.loads(config_path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        return _fallback(f"Failed to parse {config_path}: {e}")
    except (OSError, UnicodeDecodeError) as e:
        return _fallback(f"Could not read {config_path}: {e}")

    try:
        return ConfigSettings(**data.get(CONFIG_SECTION, {}))
    except ValidationError as e:
        return _fallback(f"Invalid configuration in {config_path}: {e}")
