from collections.abc import Callable
from pathlib import Path

import pytest
from fakes import FakeRunner

from encodebox.models import EncodeRequest
from encodebox.transcoder import EncodeQueue


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def encode_queue(tmp_path: Path, runner: FakeRunner) -> EncodeQueue:
    queue = EncodeQueue(
        output_dir=tmp_path / "output",
        runner=runner,
        log_dir=tmp_path / "logs",
        size_sample_interval=3600,
    )
    queue.initialize()
    return queue


@pytest.fixture
def make_request(tmp_path: Path) -> Callable[..., EncodeRequest]:
    def _make(name: str = "movie.mkv", audio_streams: list[int] | None = None) -> EncodeRequest:
        source = tmp_path / "media" / name
        source.parent.mkdir(parents=True, exist_ok=True)
        source.write_bytes(b"\x00" * 1024)

        return EncodeRequest(
            file_path=str(source),
            audio_streams=[1] if audio_streams is None else audio_streams,
        )

    return _make
