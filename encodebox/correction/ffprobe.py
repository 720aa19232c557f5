import json
import math
import subprocess
from pathlib import Path
from typing import Literal, NotRequired, TypedDict, cast

from encodebox.models import StreamDescriptor


class StreamTags(TypedDict):
    language: NotRequired[str]
    title: NotRequired[str]
    DURATION: NotRequired[str]


class Stream(TypedDict):
    index: int
    codec_name: NotRequired[str]
    codec_long_name: NotRequired[str]
    codec_type: (
        Literal["video"]
        | Literal["audio"]
        | Literal["subtitle"]
        | Literal["data"]
        | Literal["attachment"]
    )
    width: NotRequired[int]
    height: NotRequired[int]
    sample_aspect_ratio: NotRequired[str]
    display_aspect_ratio: NotRequired[str]
    pix_fmt: NotRequired[str]
    field_order: NotRequired[str]
    r_frame_rate: NotRequired[str]
    channels: NotRequired[int]
    channel_layout: NotRequired[str]
    bit_rate: NotRequired[str]
    duration: NotRequired[str]
    tags: NotRequired[StreamTags]


class Format(TypedDict):
    filename: str
    nb_streams: int
    format_name: str
    format_long_name: NotRequired[str]
    duration: NotRequired[str]
    size: NotRequired[str]
    bit_rate: NotRequired[str]


class FfprobeResult(TypedDict):
    streams: list[Stream]
    format: Format


class FfprobeException(Exception):
    pass


def ffprobe(path: Path | str, ffprobe_path: str = "ffprobe") -> FfprobeResult:
    command = [
        ffprobe_path,
        "-hide_banner",
        "-loglevel",
        "error",
        "-print_format",
        "json",
        "-show_format",
        "-show_streams",
        str(path),
    ]

    try:
        result = subprocess.run(command, capture_output=True, text=True)
    except OSError as e:
        raise FfprobeException(f"could not run ffprobe: {e}") from e

    if result.returncode != 0:
        raise FfprobeException(f"ffprobe failed: {result.stderr.strip()}")

    try:
        info = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise FfprobeException(f"ffprobe returned invalid json: {e}") from e

    info.setdefault("streams", [])
    info.setdefault("format", {})

    return cast(FfprobeResult, info)


def get_duration(info: FfprobeResult) -> float:
    """Container duration in seconds, raising FfprobeException when it is missing."""
    raw = info["format"].get("duration")

    try:
        duration = float(raw)  # pyright: ignore[reportArgumentType]
    except (TypeError, ValueError):
        duration = math.nan

    if math.isnan(duration) or duration <= 0:
        raise FfprobeException(f"could not parse video duration from media info: {raw!r}")

    return duration


def get_streams(info: FfprobeResult) -> list[StreamDescriptor]:
    streams: list[StreamDescriptor] = []

    for stream in info["streams"]:
        if stream.get("codec_type") not in ("video", "audio", "subtitle", "data", "attachment"):
            continue

        tags = stream.get("tags", {})

        streams.append(
            StreamDescriptor(
                index=stream["index"],
                kind=stream["codec_type"],
                codec_name=stream.get("codec_name"),
                width=stream.get("width"),
                height=stream.get("height"),
                sample_aspect_ratio=stream.get("sample_aspect_ratio", "1:1"),
                field_order=stream.get("field_order"),
                channel_layout=stream.get("channel_layout"),
                language=tags.get("language"),
            )
        )

    return streams
