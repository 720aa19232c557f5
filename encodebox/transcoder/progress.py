import math
import re

_TIMESTAMP = r"(\d+):(\d{2}):(\d{2})(?:\.(\d+))?"

DURATION_REGEX = re.compile(rf"Duration:\s*{_TIMESTAMP}")
TIME_REGEX = re.compile(rf"time=\s*{_TIMESTAMP}")


def timestamp_to_seconds(match: re.Match[str]) -> float:
    hours, minutes, seconds, fraction = match.groups()

    total = int(hours) * 3600 + int(minutes) * 60 + int(seconds)

    if fraction:
        total += float(f"0.{fraction}")

    return total


class ProgressParser:
    """Turns ffmpeg's diagnostic lines into a 0-100 completion percentage.

    The first ``Duration:`` line fixes the total, every ``time=`` line after
    that moves the elapsed position. ``feed`` only returns a value when the
    percentage moved forward.
    """

    def __init__(self) -> None:
        self.total: float | None = None
        self.progress = 0

    def feed(self, line: str) -> int | None:
        if self.total is None:
            if match := DURATION_REGEX.search(line):
                total = timestamp_to_seconds(match)
                if total > 0:
                    self.total = total
            return None

        match = TIME_REGEX.search(line)
        if match is None:
            return None

        elapsed = timestamp_to_seconds(match)
        # half up, not to even
        progress = min(100, math.floor(100 * elapsed / self.total + 0.5))

        if progress <= self.progress:
            return None

        self.progress = progress
        return progress
