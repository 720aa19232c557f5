import logging
from pathlib import Path
from typing import Any, cast

from encodebox.config import Config
from encodebox.models import Inspection, VideoStreamSummary

from .cropdetect import NO_CROP, detect_crop
from .deriver import derive_correction, guess_aspect_ratio, validate_aspect_ratio
from .ffprobe import ffprobe, get_duration, get_streams
from .screenshots import ScreenshotException, cache_key, generate_screenshots


class InspectionError(Exception):
    pass


class Inspector:
    def __init__(
        self,
        screenshots_dir: Path,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        screenshot_count: int = 12,
        crop_sample_seconds: float = 5,
        crop_sample_timeout: float | None = None,
    ) -> None:
        self.logger = logging.getLogger(__name__)

        self.screenshots_dir = screenshots_dir
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path
        self.screenshot_count = screenshot_count
        self.crop_sample_seconds = crop_sample_seconds
        self.crop_sample_timeout = crop_sample_timeout

    @classmethod
    def from_config(cls, cfg: Config) -> "Inspector":
        return cls(
            screenshots_dir=cfg.inspection.screenshots_dir,
            ffmpeg_path=cfg.encoding.ffmpeg_path,
            ffprobe_path=cfg.encoding.ffprobe_path,
            screenshot_count=cfg.inspection.screenshot_count,
            crop_sample_seconds=cfg.inspection.crop_sample_seconds,
            crop_sample_timeout=cfg.inspection.crop_sample_timeout,
        )

    def inspect(
        self,
        file_path: Path | str,
        aspect_ratio: str | None = None,
        screenshots: bool = True,
    ) -> Inspection:
        """Probe a file, derive its correction plan and render preview frames.

        Raises ValueError for an unknown aspect ratio, FfprobeException when the
        file cannot be probed and InspectionError when previews fail.
        """
        aspect_ratio = validate_aspect_ratio(aspect_ratio)
        path = Path(file_path)

        self.logger.info(f"inspecting {path.name} (aspect ratio: {aspect_ratio})")

        info = ffprobe(path, self.ffprobe_path)
        duration = get_duration(info)
        streams = get_streams(info)

        crop = detect_crop(
            path,
            duration,
            ffmpeg_path=self.ffmpeg_path,
            sample_seconds=self.crop_sample_seconds,
            timeout=self.crop_sample_timeout,
        )

        plan = derive_correction(streams, crop, aspect_ratio)

        video = next((s for s in streams if s.kind == "video"), None)
        video_summary: VideoStreamSummary | None = None
        suggested = "None"

        if video is not None:
            self.logger.debug(
                f"video stream: {video.width}x{video.height}, SAR {video.sample_aspect_ratio}, "
                f"field order {video.field_order}"
            )
            video_summary = VideoStreamSummary(
                width=video.width,
                height=video.height,
                sample_aspect_ratio=video.sample_aspect_ratio,
                crop_dimensions=(
                    {"w": crop.width, "h": crop.height, "x": crop.x, "y": crop.y} if crop else None
                ),
            )
            suggested = guess_aspect_ratio(video, crop)

        for line in plan.summary():
            self.logger.info(f"{path.name}: {line}")

        urls: list[str] = []

        if screenshots:
            try:
                frames = generate_screenshots(
                    path,
                    duration,
                    plan.filter_args,
                    self.screenshots_dir,
                    count=self.screenshot_count,
                    ffmpeg_path=self.ffmpeg_path,
                )
            except ScreenshotException as e:
                raise InspectionError(f"failed to generate screenshots: {e}") from e

            urls = [f"/screenshots/{cache_key(path)}/{f.name}" for f in frames]

        return Inspection(
            screenshot_urls=urls,
            crop_detect_result=str(crop) if crop else NO_CROP,
            media_info=cast(dict[str, Any], info),
            deinterlace_reason=plan.deinterlace_reason,
            video_stream=video_summary,
            plan=plan,
            filters=plan.filter_args,
            suggested_aspect_ratio=suggested,
        )
