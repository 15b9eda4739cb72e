"""File utility functions for tablegrant."""

from pathlib import Path
from typing import Iterable, List

from tablegrant.permissions.models import SourceFile
from tablegrant.pipelines.registry import file_extension, get_pipeline, list_pipelines

# Acknowledged by the analyzer even though no pipeline parses them
_EXTRA_EXTENSIONS = ("sql",)


def supported_extensions() -> List[str]:
    """Return every file extension picked up when walking a directory."""
    extensions = set(_EXTRA_EXTENSIONS)
    for name in list_pipelines():
        extensions.update(get_pipeline(name).extensions)
    return sorted(extensions)


def read_source_file(file_path: Path) -> SourceFile:
    """
    Read a source file with normalized newlines.

    Args:
        file_path: Path to the file to read

    Returns:
        SourceFile named after the file's base name

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the path is not a file
        PermissionError: If the file cannot be read
        UnicodeDecodeError: If the file encoding is not UTF-8
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Source file not found: {file_path}")

    if not file_path.is_file():
        raise ValueError(f"Path is not a file: {file_path}")

    try:
        text = file_path.read_text(encoding="utf-8")
    except PermissionError as e:
        raise PermissionError(f"Cannot read file {file_path}: {e}") from e
    except UnicodeDecodeError as e:
        raise UnicodeDecodeError(
            e.encoding,
            e.object,
            e.start,
            e.end,
            f"File {file_path} is not valid UTF-8: {e.reason}",
        ) from e

    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return SourceFile(filename=file_path.name, text=text)


def collect_source_files(paths: Iterable[Path]) -> List[SourceFile]:
    """
    Read files and directories into SourceFile objects.

    Files are taken as given, whatever their extension. Directories are
    walked recursively in sorted order, keeping supported extensions only.

    Args:
        paths: Files and/or directories

    Returns:
        SourceFile list in the order encountered

    Raises:
        FileNotFoundError: If a path does not exist
    """
    extensions = supported_extensions()
    sources: List[SourceFile] = []
    for path in paths:
        if path.is_dir():
            for child in sorted(path.rglob("*")):
                if child.is_file() and file_extension(child.name) in extensions:
                    sources.append(read_source_file(child))
        else:
            sources.append(read_source_file(path))
    return sources
