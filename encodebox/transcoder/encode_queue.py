"""Sequential encode queue.

Jobs run strictly in admission order with at most one ffmpeg alive at a time.
All queue state is guarded by one lock; the process callbacks, the size
sampler and the public methods all take it before touching a job.

The snapshot only shows the pending jobs and the current slot. A finished job
stays in the current slot until the next job starts.

ffmpeg writes to a ``.part`` sibling of the output path, which is renamed into
place on success. A failed or cancelled job only ever deletes its own ``.part``
file, never an earlier encode with the same name.
"""

import logging
import shlex
import threading
import time
from collections.abc import Callable
from functools import partial
from pathlib import Path
from typing import Protocol

from encodebox.config import Config
from encodebox.models import EncodeJob, EncodeRequest, JobStatus, QueueState

from .progress import ProgressParser
from .transcoder import FfmpegRunner, build_ffmpeg_command, output_filename, partial_path

QueueListener = Callable[[QueueState], None]


class InvalidJobError(ValueError):
    pass


class RunningProcess(Protocol):
    def kill(self) -> None: ...


class Runner(Protocol):
    def start(
        self,
        command: list[str],
        log_path: Path,
        on_line: Callable[[str], None],
        on_exit: Callable[[int, str], None],
    ) -> RunningProcess: ...


def resolve_exit(status: JobStatus, returncode: int) -> tuple[JobStatus, str | None]:
    """Status and error a job ends with when its process exits.

    Anything no longer processing (i.e. cancelled) keeps its status.
    """
    if status is not JobStatus.PROCESSING:
        return status, None

    if returncode == 0:
        return JobStatus.COMPLETED, None

    return JobStatus.FAILED, f"ffmpeg exited with code {returncode}. See logs for details."


class EncodeQueue:
    def __init__(
        self,
        output_dir: Path,
        runner: Runner | None = None,
        log_dir: Path | None = None,
        ffmpeg_path: str = "ffmpeg",
        size_sample_interval: float = 2.0,
        notify: Callable[..., None] | None = None,
    ) -> None:
        self.logger = logging.getLogger(__name__)

        self.output_dir = output_dir
        self.log_dir = log_dir if log_dir is not None else output_dir / "logs"
        self.ffmpeg_path = ffmpeg_path
        self.size_sample_interval = size_sample_interval
        self.runner: Runner = runner if runner is not None else FfmpegRunner()
        self.notify = notify

        self._lock = threading.RLock()
        self._pending: list[EncodeJob] = []
        self._current: EncodeJob | None = None
        self._process: RunningProcess | None = None
        self._sampler_stop: threading.Event | None = None
        self._listeners: list[QueueListener] = []
        self._notifications: list[str] = []
        self._last_id = 0

    @classmethod
    def from_config(
        cls,
        cfg: Config,
        runner: Runner | None = None,
        notify: Callable[..., None] | None = None,
    ) -> "EncodeQueue":
        return cls(
            output_dir=cfg.encoding.output_dir,
            runner=runner,
            log_dir=cfg.encoding.log_dir,
            ffmpeg_path=cfg.encoding.ffmpeg_path,
            size_sample_interval=cfg.encoding.size_sample_interval,
            notify=notify,
        )

    def initialize(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.logger.info(f"encode output folder: {self.output_dir}")

    def subscribe(self, listener: QueueListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def submit(self, request: EncodeRequest) -> EncodeJob:
        if not request.audio_streams:
            raise InvalidJobError("at least one audio stream must be selected")

        path = Path(request.file_path)

        if not path.is_file():
            raise InvalidJobError(f"source file is not reachable: {path}")

        size = path.stat().st_size

        with self._lock:
            job = EncodeJob(
                **request.model_dump(),
                id=self._next_id(),
                original_file_size=size,
            )

            self._pending.append(job)
            self.logger.info(
                f"job {job.id} added to queue for {path.name} (position {len(self._pending)})"
            )
            self._publish()

            self._try_start_next()

            snapshot = job.model_copy(deep=True)

        self._send_notifications()

        return snapshot

    def cancel(self, job_id: str) -> None:
        with self._lock:
            current = self._current
            running = current is not None and not current.status.is_terminal

            if current is not None and running and current.id == job_id:
                # mark first so the exit callback leaves the status alone
                current.status = JobStatus.CANCELLED
                self._stop_sampler()

                self.logger.info(f"cancelling running job {job_id}")

                if self._process is not None:
                    try:
                        self._process.kill()
                    except OSError:
                        self.logger.error(f"failed to kill process for job {job_id}", exc_info=True)
            else:
                remaining = [j for j in self._pending if j.id != job_id]

                if len(remaining) == len(self._pending):
                    self.logger.debug(f"cancel requested for unknown job {job_id}")
                else:
                    for job in self._pending:
                        if job.id == job_id:
                            job.status = JobStatus.CANCELLED
                    self._pending = remaining
                    self.logger.info(f"removed pending job {job_id} from queue")

            self._publish()

            self._try_start_next()

        self._send_notifications()

    def get_queue_state(self) -> QueueState:
        with self._lock:
            return QueueState(
                queue=[j.model_copy(deep=True) for j in self._pending],
                current_job=self._current.model_copy(deep=True) if self._current else None,
            )

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._process is not None

    def _next_id(self) -> str:
        # microsecond clock, bumped when two jobs land in the same tick
        self._last_id = max(time.time_ns() // 1000, self._last_id + 1)
        return str(self._last_id)

    def _log_path(self, job: EncodeJob) -> Path:
        return self.log_dir / f"{job.id}.log"

    def _try_start_next(self) -> None:
        while self._process is None and self._pending:
            job = self._pending.pop(0)

            output_path = self.output_dir / output_filename(job)

            job.status = JobStatus.PROCESSING
            job.start_time = int(time.time() * 1000)
            job.output_path = str(output_path)
            self._current = job

            command = build_ffmpeg_command(job, partial_path(output_path), self.ffmpeg_path)

            self.logger.info(f"processing job {job.id}: {Path(job.file_path).name}")
            self.logger.debug(f"ffmpeg command: {shlex.join(command)}")

            try:
                self._process = self.runner.start(
                    command,
                    self._log_path(job),
                    on_line=partial(self._on_output, job, ProgressParser()),
                    on_exit=partial(self._on_exit, job),
                )
            except OSError as e:
                self.logger.error(f"could not start ffmpeg for job {job.id}: {e}")
                job.status = JobStatus.FAILED
                job.error = f"could not start ffmpeg: {e}"
                self._notifications.append(
                    f"{Path(job.file_path).name} has failed to encode, could not start ffmpeg: {e}"
                )
                self._publish()
                continue

            self._start_sampler(job)
            self._publish()

    def _on_output(self, job: EncodeJob, parser: ProgressParser, line: str) -> None:
        progress = parser.feed(line)

        if progress is None:
            return

        with self._lock:
            if job.status is not JobStatus.PROCESSING or progress <= job.progress:
                return

            job.progress = progress
            self._publish()

    def _on_exit(self, job: EncodeJob, returncode: int, transcript_tail: str) -> None:
        with self._lock:
            if self._current is job:
                self._stop_sampler()

            status, error = resolve_exit(job.status, returncode)

            if job.status is JobStatus.PROCESSING:
                if status is JobStatus.COMPLETED:
                    error = self._move_into_place(job)
                    if error is not None:
                        status = JobStatus.FAILED

                job.status = status

                if status is JobStatus.COMPLETED:
                    job.progress = 100
                    self.logger.info(f"job {job.id} completed: {job.output_path}")
                else:
                    job.error = error
                    self.logger.error(f"job {job.id} failed (status {returncode}): {job.file_path}")
                    self.logger.error(f"log file: {self._log_path(job)}")
                    self.logger.debug(f"last ffmpeg output for job {job.id}:\n{transcript_tail}")
                    self._notifications.append(
                        f"{Path(job.file_path).name} has failed to encode, "
                        f"log: {self._log_path(job)}"
                    )
            else:
                self.logger.info(f"job {job.id} process exited ({returncode}) after {job.status}")

            if job.status in (JobStatus.CANCELLED, JobStatus.FAILED) and job.output_path:
                self._remove_partial_output(partial_path(Path(job.output_path)))

            if self._current is job:
                self._process = None

            self._publish()

            self._try_start_next()

        self._send_notifications()

    def _move_into_place(self, job: EncodeJob) -> str | None:
        """Rename the finished ``.part`` file to the job's output path, error message on failure."""
        assert job.output_path is not None
        output_path = Path(job.output_path)

        try:
            partial_path(output_path).replace(output_path)
        except OSError as e:
            self.logger.error(f"could not move encoded file to {output_path}: {e}")
            return f"could not move the encoded file into place: {e}"

        return None

    def _remove_partial_output(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError:
            self.logger.debug(f"failed to delete partial output: {path}")

    def _send_notifications(self) -> None:
        # called with the lock released, sending may block on the network
        with self._lock:
            messages, self._notifications = self._notifications, []

        if self.notify is None:
            return

        for message in messages:
            self.notify(message, title="encoding error")

    def _start_sampler(self, job: EncodeJob) -> None:
        stop = threading.Event()
        self._sampler_stop = stop

        t = threading.Thread(
            target=self._sample_output_size,
            args=(job, stop),
            name=f"size-sampler-{job.id}",
            daemon=True,
        )
        t.start()

    def _stop_sampler(self) -> None:
        if self._sampler_stop is not None:
            self._sampler_stop.set()
            self._sampler_stop = None

    def _sample_output_size(self, job: EncodeJob, stop: threading.Event) -> None:
        assert job.output_path is not None
        output_path = partial_path(Path(job.output_path))

        while not stop.wait(self.size_sample_interval):
            try:
                size = output_path.stat().st_size
            except OSError:
                # ffmpeg has not created it yet
                continue

            with self._lock:
                if stop.is_set() or job.status is not JobStatus.PROCESSING:
                    return

                job.current_file_size = size
                self._publish()

    def _publish(self) -> None:
        if not self._listeners:
            return

        state = self.get_queue_state()

        for listener in self._listeners:
            try:
                listener(state)
            except Exception:
                self.logger.warning("queue listener raised", exc_info=True)
