import logging
import os
import shlex
import signal
import subprocess
import threading
from collections import deque
from collections.abc import Callable
from pathlib import Path

from encodebox import __version__
from encodebox.models import EncodeRequest

SOFTWARE_CODECS = ("libx264", "libx265")
RKMPP_CODECS = ("hevc_rkmpp",)

TRANSCRIPT_TAIL_LINES = 20

PARTIAL_SUFFIX = ".part"

logger = logging.getLogger(__name__)


def output_filename(request: EncodeRequest) -> str:
    if request.output_filename and request.output_filename.strip():
        # never let a client-supplied name leave the output folder
        return f"{Path(request.output_filename.strip()).name}.mp4"

    return f"{Path(request.file_path).stem}-encoded.mp4"


def partial_path(output_path: Path) -> Path:
    """Where ffmpeg writes until the encode succeeds and is moved to ``output_path``."""
    return output_path.with_name(output_path.name + PARTIAL_SUFFIX)


def build_ffmpeg_command(
    request: EncodeRequest, output_path: Path | str, ffmpeg_path: str = "ffmpeg"
) -> list[str]:
    command = [
        ffmpeg_path,
        "-hide_banner",
    ]

    command.extend(["-i", request.file_path])

    command.extend(["-map", "0:v:0"])
    command.extend(["-c:v", request.video_codec])

    if request.video_codec in SOFTWARE_CODECS:
        command.extend(["-preset", request.video_preset])
        command.extend(["-crf", str(request.video_crf)])
    elif request.video_codec in RKMPP_CODECS:
        if request.rc_mode is not None:
            command.extend(["-rc_mode", str(request.rc_mode)])
        if request.qp_init is not None:
            command.extend(["-qp_init", str(request.qp_init)])

    if request.filters:
        command.extend(["-vf", ",".join(request.filters)])

    for i, stream_index in enumerate(request.audio_streams):
        command.extend(["-map", f"0:{stream_index}"])
        command.extend([f"-c:a:{i}", request.audio_codec])
        command.extend([f"-b:a:{i}", request.audio_bitrate])

    command.extend(["-map_chapters", "0"])
    command.extend(["-movflags", "+faststart"])

    command.extend(["-metadata", f"encodebox_version={__version__}"])

    # the muxer cannot be guessed from a .part name
    command.extend(["-f", "mp4"])

    command.extend(["-y", str(output_path)])

    return command


class FfmpegProcess:
    """A running ffmpeg whose stderr is pumped on a background thread.

    Every stderr line goes to the transcript file and to ``on_line``; when the
    process exits ``on_exit`` gets the exit code and the last lines of output.
    """

    def __init__(
        self,
        command: list[str],
        log_path: Path,
        on_line: Callable[[str], None],
        on_exit: Callable[[int, str], None],
    ) -> None:
        self.command = command
        self.log_path = log_path
        self._on_line = on_line
        self._on_exit = on_exit

        # own process group so kill() reaches anything ffmpeg spawns
        self._proc = subprocess.Popen(
            command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            bufsize=1,
            start_new_session=True,
        )

        self._thread = threading.Thread(
            target=self._pump, name=f"ffmpeg-{self._proc.pid}", daemon=True
        )
        self._thread.start()

    @property
    def pid(self) -> int:
        return self._proc.pid

    def kill(self) -> None:
        try:
            os.killpg(self._proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            logger.debug(f"process group {self._proc.pid} already gone")
            return

        logger.info(f"killed ffmpeg process group {self._proc.pid}")

    def _pump(self) -> None:
        tail: deque[str] = deque(maxlen=TRANSCRIPT_TAIL_LINES)

        try:
            with open(self.log_path, "w") as log_file:
                log_file.write(f"ffmpeg command: {shlex.join(self.command)}\n")

                assert self._proc.stderr is not None
                # text mode splits on the carriage returns ffmpeg uses for progress
                for line in self._proc.stderr:
                    log_file.write(line)

                    stripped = line.strip()
                    if not stripped:
                        continue

                    tail.append(stripped)
                    self._on_line(stripped)
        except Exception:
            logger.error("failed while reading ffmpeg output, killing it", exc_info=True)
            self.kill()
        finally:
            returncode = self._proc.wait()
            self._on_exit(returncode, "\n".join(tail))


class FfmpegRunner:
    def start(
        self,
        command: list[str],
        log_path: Path,
        on_line: Callable[[str], None],
        on_exit: Callable[[int, str], None],
    ) -> FfmpegProcess:
        log_path.parent.mkdir(parents=True, exist_ok=True)

        process = FfmpegProcess(command, log_path, on_line, on_exit)

        logger.debug(f"started ffmpeg (pid {process.pid}), transcript: {log_path}")

        return process
