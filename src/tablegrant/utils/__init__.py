"""Utility functions for tablegrant."""

from tablegrant.utils.config import ConfigSettings, find_config_file, load_config
from tablegrant.utils.file_utils import (
    collect_source_files,
    read_source_file,
    supported_extensions,
)

__all__ = [
    "ConfigSettings",
    "find_config_file",
    "load_config",
    "collect_source_files",
    "read_source_file",
    "supported_extensions",
]
