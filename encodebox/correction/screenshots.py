import hashlib
import logging
import shutil
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


class ScreenshotException(Exception):
    pass


def cache_key(path: Path | str) -> str:
    return hashlib.sha1(str(path).encode()).hexdigest()


def screenshot_timestamps(duration: float, count: int) -> list[float]:
    """Evenly spaced timestamps that skip the very start and end of the file."""
    step = duration / (count + 1)
    return [step * (i + 1) for i in range(count)]


def generate_screenshots(
    path: Path | str,
    duration: float,
    filter_args: list[str],
    screenshots_dir: Path,
    count: int = 12,
    ffmpeg_path: str = "ffmpeg",
) -> list[Path]:
    """Render ``count`` JPEG frames through the filter chain into the file's cache folder.

    The cache folder is emptied first so stale frames from a previous chain
    never survive.
    """
    output_dir = screenshots_dir / cache_key(path)

    shutil.rmtree(output_dir, ignore_errors=True)
    output_dir.mkdir(parents=True, exist_ok=True)

    screenshots: list[Path] = []

    for i, ts in enumerate(screenshot_timestamps(duration, count)):
        output_path = output_dir / f"{i + 1:02d}.jpg"

        command = [ffmpeg_path, "-hide_banner", "-loglevel", "error", "-sn"]
        command.extend(["-ss", f"{ts:.3f}", "-i", str(path)])

        if filter_args:
            command.extend(["-vf", ",".join(filter_args)])

        command.extend(["-vframes", "1", "-q:v", "2", "-y", str(output_path)])

        try:
            result = subprocess.run(command, capture_output=True, text=True)
        except OSError as e:
            raise ScreenshotException(f"could not run ffmpeg: {e}") from e

        if result.returncode != 0:
            logger.debug(f"screenshot {i + 1} stderr: {result.stderr.strip()}")
            raise ScreenshotException(
                f"ffmpeg exited with code {result.returncode} for screenshot {i + 1}"
            )

        screenshots.append(output_path)

    logger.debug(f"generated {len(screenshots)} screenshots in {output_dir}")

    return screenshots
