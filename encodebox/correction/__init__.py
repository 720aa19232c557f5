from .cropdetect import detect_crop, majority_crop
from .deriver import build_filter_args, derive_correction, guess_aspect_ratio
from .ffprobe import FfprobeException, ffprobe
from .inspector import InspectionError, Inspector

__all__ = [
    "FfprobeException",
    "InspectionError",
    "Inspector",
    "build_filter_args",
    "derive_correction",
    "detect_crop",
    "ffprobe",
    "guess_aspect_ratio",
    "majority_crop",
]
