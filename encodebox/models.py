"""Shared data models for correction plans and encode jobs."""

from enum import StrEnum
from fractions import Fraction
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ASPECT_RATIO_OPTIONS = ("None", "4:3", "16:9", "1.85:1", "2.00:1", "2.39:1")


def parse_ratio(value: str | None) -> Fraction | None:
    """Parse "num:den" (either side may be decimal) into a Fraction, None if invalid."""
    if not value or ":" not in value:
        return None

    num, _, den = value.partition(":")

    try:
        ratio = Fraction(num.strip()) / Fraction(den.strip())
    except (ValueError, ZeroDivisionError):
        return None

    if ratio <= 0:
        return None

    return ratio


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StreamDescriptor(_Model):
    model_config = ConfigDict(frozen=True)

    index: int
    kind: Literal["video", "audio", "subtitle", "data", "attachment"]
    codec_name: str | None = None
    width: int | None = None
    height: int | None = None
    sample_aspect_ratio: str = "1:1"
    field_order: str | None = None
    channel_layout: str | None = None
    language: str | None = None

    @property
    def sar(self) -> Fraction:
        # ffprobe reports 0:1 or N/A when the container does not know
        return parse_ratio(self.sample_aspect_ratio) or Fraction(1)


class CropBox(_Model):
    model_config = ConfigDict(frozen=True)

    width: int = Field(gt=0)
    height: int = Field(gt=0)
    x: int = Field(0, ge=0)
    y: int = Field(0, ge=0)

    @classmethod
    def parse(cls, value: str) -> "CropBox":
        """Parse a cropdetect value such as ``crop=1920:800:0:140``."""
        parts = value.removeprefix("crop=").split(":")

        if len(parts) != 4:
            raise ValueError(f"invalid crop value: {value!r}")

        w, h, x, y = (int(p) for p in parts)
        return cls(width=w, height=h, x=x, y=y)

    def __str__(self) -> str:
        return f"crop={self.width}:{self.height}:{self.x}:{self.y}"


class VideoFilter(_Model):
    model_config = ConfigDict(frozen=True)

    name: str
    args: tuple[int | str, ...] = ()

    def __str__(self) -> str:
        if not self.args:
            return self.name
        return f"{self.name}=" + ":".join(str(a) for a in self.args)


class AspectCorrection(_Model):
    model_config = ConfigDict(frozen=True)

    sar: str
    original_resolution: str
    target_resolution: str


class CorrectionPlan(_Model):
    model_config = ConfigDict(frozen=True)

    filters: tuple[VideoFilter, ...] = ()
    deinterlace_reason: str | None = None
    aspect_correction: AspectCorrection | None = None
    aspect_ratio: str = "None"

    @property
    def filter_args(self) -> list[str]:
        args = [str(f) for f in self.filters]

        # scale keeps the display aspect by rewriting SAR, pin it back to square pixels
        if any(f.name == "scale" for f in self.filters):
            args.append("setsar=1")

        return args

    @property
    def filter_chain(self) -> str:
        return ",".join(self.filter_args)

    def summary(self) -> list[str]:
        lines: list[str] = []

        if self.deinterlace_reason is not None:
            lines.append(f"deinterlace ({self.deinterlace_reason})")

        for f in self.filters:
            if f.name == "crop":
                lines.append(f"crop to {f.args[0]}x{f.args[1]} at {f.args[2]},{f.args[3]}")

        if self.aspect_correction is not None:
            ac = self.aspect_correction
            lines.append(
                f"non-square pixels (SAR {ac.sar}): "
                f"{ac.original_resolution} -> {ac.target_resolution}"
            )

        if self.aspect_ratio != "None":
            lines.append(f"display aspect ratio {self.aspect_ratio}")

        return lines


class VideoStreamSummary(_Model):
    width: int | None = None
    height: int | None = None
    sample_aspect_ratio: str | None = None
    crop_dimensions: dict[str, int] | None = None


class Inspection(_Model):
    screenshot_urls: list[str] = Field(default_factory=list)
    crop_detect_result: str
    media_info: dict[str, Any]
    deinterlace_reason: str | None = None
    video_stream: VideoStreamSummary | None = None
    plan: CorrectionPlan
    filters: list[str] = Field(default_factory=list)
    suggested_aspect_ratio: str = "None"


class JobStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class EncodeRequest(_Model):
    file_path: str = Field(min_length=1)

    video_codec: str = "libx265"
    video_preset: str = "veryslow"
    video_crf: int = 18
    rc_mode: int | None = Field(None, alias="rc_mode")
    qp_init: int | None = Field(None, alias="qp_init")

    audio_codec: str = "aac"
    audio_bitrate: str = "160k"
    audio_streams: list[int]

    filters: list[str] = Field(default_factory=list)
    output_filename: str | None = None


class EncodeJob(EncodeRequest):
    id: str
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    error: str | None = None
    output_path: str | None = None
    start_time: int | None = None  # epoch milliseconds
    original_file_size: int | None = None
    current_file_size: int | None = None


class QueueState(_Model):
    queue: list[EncodeJob]
    current_job: EncodeJob | None = None
