import subprocess
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from encodebox.correction.cropdetect import (
    detect_crop,
    majority_crop,
    parse_last_crop,
    sample_crop,
)
from encodebox.models import CropBox

A = CropBox(width=1920, height=800, x=0, y=140)
B = CropBox(width=1920, height=816, x=0, y=132)
C = CropBox(width=1440, height=1080, x=240, y=0)


def cropdetect_output(*crops: str) -> str:
    lines = ["Input #0, matroska,webm, from 'movie.mkv':", "  Duration: 01:40:00.00"]
    for i, crop in enumerate(crops):
        lines.append(
            f"[Parsed_cropdetect_0 @ 0x5581] x1:0 x2:1919 y1:140 y2:939 w:1920 h:800 "
            f"x:0 y:140 pts:{i * 1001} t:{i * 0.04:.6f} limit:0.094118 {crop}"
        )
    return "\n".join(lines)


class TestParseLastCrop:
    def test_last_value_wins(self) -> None:
        output = cropdetect_output("crop=1920:816:0:132", "crop=1920:800:0:140")

        assert parse_last_crop(output) == A

    def test_no_crop_lines(self) -> None:
        assert parse_last_crop("frame=  120 fps=0.0 q=-0.0 Lsize=N/A time=00:00:05.00") is None

    def test_zero_sized_crop_ignored(self) -> None:
        assert parse_last_crop(cropdetect_output("crop=0:0:0:0")) is None


class TestMajorityCrop:
    def test_two_of_three_agree(self) -> None:
        assert majority_crop([A, B, A]) == A
        assert majority_crop([B, A, A]) == A

    def test_all_disagree_first_seen_wins(self) -> None:
        assert majority_crop([A, B, C]) == A
        assert majority_crop([C, B, A]) == C

    def test_all_empty(self) -> None:
        assert majority_crop([None, None, None]) is None

    def test_missing_samples_vote_for_no_crop(self) -> None:
        assert majority_crop([A, None, None]) is None
        assert majority_crop([None, A, A]) == A

    def test_no_samples(self) -> None:
        assert majority_crop([]) is None


class TestSampleCrop:
    @patch("encodebox.correction.cropdetect.subprocess.run")
    def test_command(self, mock_run: MagicMock) -> None:
        mock_run.return_value = MagicMock(returncode=0, stderr=cropdetect_output(str(A)))

        assert sample_crop("/data/movie.mkv", 120.0, 5, "ffmpeg") == A

        command = mock_run.call_args.args[0]
        assert command[0] == "ffmpeg"
        assert command[command.index("-ss") + 1] == "120.000"
        assert command[command.index("-t") + 1] == "5"
        assert command[command.index("-vf") + 1] == "cropdetect"
        assert command.index("-ss") < command.index("-i")

    @pytest.mark.parametrize(
        "error",
        [FileNotFoundError("ffmpeg"), subprocess.TimeoutExpired(cmd="ffmpeg", timeout=1)],
    )
    def test_errors_mean_no_crop(self, error: Exception) -> None:
        with patch("encodebox.correction.cropdetect.subprocess.run", side_effect=error):
            assert sample_crop("/data/movie.mkv", 10.0, 5) is None


class TestDetectCrop:
    @staticmethod
    def fake_run(results: dict[str, str]) -> Any:
        def run(command: list[str], **kwargs: Any) -> MagicMock:
            start = command[command.index("-ss") + 1]
            return MagicMock(returncode=0, stderr=results[start])

        return run

    def test_samples_at_20_50_80_percent(self) -> None:
        results = {
            "200.000": cropdetect_output(str(B)),
            "500.000": cropdetect_output(str(A)),
            "800.000": cropdetect_output(str(A)),
        }

        with patch(
            "encodebox.correction.cropdetect.subprocess.run", side_effect=self.fake_run(results)
        ) as mock_run:
            crop = detect_crop("/data/movie.mkv", 1000.0)

        assert crop == A
        assert mock_run.call_count == 3

    def test_tie_goes_to_earliest_sample(self) -> None:
        results = {
            "200.000": cropdetect_output(str(C)),
            "500.000": cropdetect_output(str(B)),
            "800.000": cropdetect_output(str(A)),
        }

        with patch(
            "encodebox.correction.cropdetect.subprocess.run", side_effect=self.fake_run(results)
        ):
            assert detect_crop("/data/movie.mkv", 1000.0) == C

    def test_nothing_detected(self) -> None:
        results = dict.fromkeys(["200.000", "500.000", "800.000"], cropdetect_output())

        with patch(
            "encodebox.correction.cropdetect.subprocess.run", side_effect=self.fake_run(results)
        ):
            assert detect_crop("/data/movie.mkv", 1000.0) is None
