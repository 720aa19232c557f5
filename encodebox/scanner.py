import base64
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def find_media_files(root: Path | str, extension: str = ".mkv") -> list[Path]:
    """Recursively collect files under ``root`` with the given extension.

    A folder that cannot be read is logged and skipped.
    """
    extension = extension.lower()
    files: list[Path] = []

    try:
        entries = sorted(os.scandir(root), key=lambda e: e.name)
    except OSError:
        logger.warning(f"could not read directory: {root}", exc_info=True)
        return files

    for entry in entries:
        if entry.is_dir(follow_symlinks=False):
            files.extend(find_media_files(entry.path, extension))
        elif Path(entry.name).suffix.lower() == extension:
            files.append(Path(entry.path).absolute())

    return files


def file_id(path: Path | str) -> str:
    return base64.urlsafe_b64encode(str(path).encode()).decode().rstrip("=")


def path_from_id(value: str) -> Path:
    padding = "=" * (-len(value) % 4)
    return Path(base64.urlsafe_b64decode(value + padding).decode())
