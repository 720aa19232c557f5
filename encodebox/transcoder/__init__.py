from .encode_queue import EncodeQueue, InvalidJobError, resolve_exit
from .progress import ProgressParser
from .transcoder import FfmpegRunner, build_ffmpeg_command

__all__ = [
    "EncodeQueue",
    "FfmpegRunner",
    "InvalidJobError",
    "ProgressParser",
    "build_ffmpeg_command",
    "resolve_exit",
]
