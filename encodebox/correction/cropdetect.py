import logging
import re
import subprocess
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from encodebox.models import CropBox

CROP_REGEX = re.compile(r"crop=(\d+):(\d+):(\d+):(\d+)")

SAMPLE_POSITIONS = (0.2, 0.5, 0.8)

NO_CROP = "No crop detected"

logger = logging.getLogger(__name__)


def parse_last_crop(output: str) -> CropBox | None:
    """Return the final crop cropdetect printed, None if it printed none.

    cropdetect refines its estimate as it sees more frames, so only the last
    value of a sample counts.
    """
    matches = CROP_REGEX.findall(output)

    if not matches:
        return None

    w, h, x, y = (int(v) for v in matches[-1])

    if w <= 0 or h <= 0:
        return None

    return CropBox(width=w, height=h, x=x, y=y)


def majority_crop(samples: list[CropBox | None]) -> CropBox | None:
    """Most frequent sample value, ties going to the value seen first.

    A sample without a crop is a vote for "no crop".
    """
    if not samples:
        return None

    # Counter keeps insertion order and most_common() sorts stably
    winner, _ = Counter(samples).most_common(1)[0]
    return winner


def sample_crop(
    path: Path | str,
    start: float,
    duration: float,
    ffmpeg_path: str = "ffmpeg",
    timeout: float | None = None,
) -> CropBox | None:
    command = [
        ffmpeg_path,
        "-hide_banner",
        "-ss",
        f"{start:.3f}",
        "-t",
        f"{duration:g}",
        "-i",
        str(path),
        "-vf",
        "cropdetect",
        "-f",
        "null",
        "-",
    ]

    try:
        result = subprocess.run(command, capture_output=True, text=True, timeout=timeout)
    except (OSError, subprocess.TimeoutExpired):
        logger.warning(f"cropdetect sample at {start:.1f}s failed for {path}", exc_info=True)
        return None

    return parse_last_crop(result.stderr)


def detect_crop(
    path: Path | str,
    duration: float,
    ffmpeg_path: str = "ffmpeg",
    sample_seconds: float = 5,
    timeout: float | None = None,
) -> CropBox | None:
    timestamps = [duration * p for p in SAMPLE_POSITIONS]

    with ThreadPoolExecutor(max_workers=len(timestamps)) as pool:
        samples = list(
            pool.map(
                lambda ts: sample_crop(path, ts, sample_seconds, ffmpeg_path, timeout),
                timestamps,
            )
        )

    crop = majority_crop(samples)

    logger.debug(
        f"cropdetect samples for {Path(path).name}: "
        f"{[str(s) if s else None for s in samples]} -> {crop}"
    )

    return crop
