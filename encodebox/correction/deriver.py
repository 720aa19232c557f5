"""Derive the video filter chain a source needs from its probe facts.

The chain is always ordered deinterlace, crop, scale: deinterlacing has to see
the original fields, and cropping before scaling avoids resampling the bars.
"""

import logging
import math
from fractions import Fraction

from encodebox.models import (
    ASPECT_RATIO_OPTIONS,
    AspectCorrection,
    CorrectionPlan,
    CropBox,
    StreamDescriptor,
    VideoFilter,
    parse_ratio,
)

from .cropdetect import NO_CROP

ASPECT_RATIO_TOLERANCE = 0.1

DEINTERLACE_FILTER = "yadif"

logger = logging.getLogger(__name__)


def _round(value: Fraction | float) -> int:
    # half up, not to even
    return math.floor(value + Fraction(1, 2))


def validate_aspect_ratio(label: str | None) -> str:
    if label is None or label == "":
        return "None"

    if label not in ASPECT_RATIO_OPTIONS:
        raise ValueError(
            f"unknown aspect ratio {label!r}, expected one of {', '.join(ASPECT_RATIO_OPTIONS)}"
        )

    return label


def guess_aspect_ratio(stream: StreamDescriptor, crop: CropBox | None = None) -> str:
    """Closest enumerated aspect ratio to what the stream displays as, or "None"."""
    if not stream.width or not stream.height:
        return "None"

    width = crop.width if crop else stream.width
    height = crop.height if crop else stream.height

    dar = width / height * float(stream.sar)

    best = "None"
    smallest_diff = math.inf

    for option in ASPECT_RATIO_OPTIONS[1:]:
        ratio = parse_ratio(option)
        assert ratio is not None

        diff = abs(dar - float(ratio))
        if diff < smallest_diff:
            smallest_diff = diff
            best = option

    if smallest_diff < ASPECT_RATIO_TOLERANCE:
        return best

    return "None"


def derive_correction(
    streams: list[StreamDescriptor],
    crop: CropBox | None,
    aspect_ratio: str | None = None,
) -> CorrectionPlan:
    aspect_ratio = validate_aspect_ratio(aspect_ratio)

    video = next((s for s in streams if s.kind == "video"), None)

    if video is None or not video.width or not video.height:
        logger.debug("no usable video stream, nothing to correct")
        return CorrectionPlan(aspect_ratio=aspect_ratio)

    filters: list[VideoFilter] = []
    deinterlace_reason: str | None = None
    aspect_correction: AspectCorrection | None = None

    if video.field_order and video.field_order != "progressive":
        filters.append(VideoFilter(name=DEINTERLACE_FILTER))
        deinterlace_reason = video.field_order.upper()

    width, height = video.width, video.height

    if crop is not None:
        filters.append(VideoFilter(name="crop", args=(crop.width, crop.height, crop.x, crop.y)))
        width, height = crop.width, crop.height

    sar = video.sar

    if sar != 1:
        target_width = _round(width * sar)
        filters.append(VideoFilter(name="scale", args=(target_width, height)))
        aspect_correction = AspectCorrection(
            sar=f"{sar.numerator}:{sar.denominator}",
            original_resolution=f"{width}x{height}",
            target_resolution=f"{target_width}x{height}",
        )
        width = target_width

    if aspect_ratio != "None":
        ratio = parse_ratio(aspect_ratio)
        assert ratio is not None

        target_height = _round(width / ratio)
        filters.append(VideoFilter(name="scale", args=(width, target_height)))
        chosen = aspect_ratio
    else:
        chosen = guess_aspect_ratio(video, crop)

    plan = CorrectionPlan(
        filters=tuple(filters),
        deinterlace_reason=deinterlace_reason,
        aspect_correction=aspect_correction,
        aspect_ratio=chosen,
    )

    logger.debug(f"correction plan: [{plan.filter_chain}] aspect ratio {plan.aspect_ratio}")

    return plan


def build_filter_args(
    deinterlace: bool = False,
    crop: str | None = None,
    aspect_ratio: str | None = None,
) -> list[str]:
    """Filter arguments from the individual choices a client confirmed.

    The aspect ratio is applied as a display aspect flag, so the encoded
    pixels are left as cropped.
    """
    aspect_ratio = validate_aspect_ratio(aspect_ratio)

    args: list[str] = []

    if deinterlace:
        args.append(DEINTERLACE_FILTER)

    if crop and crop != NO_CROP:
        args.append(str(CropBox.parse(crop)))

    if aspect_ratio != "None":
        ratio = parse_ratio(aspect_ratio)
        assert ratio is not None
        args.append(f"setdar=dar={ratio.numerator}/{ratio.denominator}")

    return args
