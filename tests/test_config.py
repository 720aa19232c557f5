from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests
from pydantic import ValidationError

from encodebox import push
from encodebox.config import Config, PushoverConfig


class TestConfig:
    def test_defaults(self) -> None:
        cfg = Config()

        assert cfg.media.root == Path("/data")
        assert cfg.media.extension == ".mkv"
        assert cfg.encoding.video_codec == "libx265"
        assert cfg.encoding.video_crf == 18
        assert cfg.server.port == 8080
        assert cfg.pushover is None

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EB_MEDIA__ROOT", "/mnt/media")
        monkeypatch.setenv("EB_ENCODING__VIDEO_CRF", "22")
        monkeypatch.setenv("EB_SERVER__PORT", "9000")

        cfg = Config()

        assert cfg.media.root == Path("/mnt/media")
        assert cfg.encoding.video_crf == 22
        assert cfg.server.port == 9000

    def test_extension_normalized(self) -> None:
        cfg = Config(media={"extension": ".MKV"})

        assert cfg.media.extension == ".mkv"

    def test_extension_needs_dot(self) -> None:
        with pytest.raises(ValidationError):
            Config(media={"extension": "mkv"})

    def test_crf_range(self) -> None:
        with pytest.raises(ValidationError):
            Config(encoding={"video_crf": 60})


class TestPush:
    @pytest.fixture
    def pushover(self) -> PushoverConfig:
        return PushoverConfig(user_key="user", api_key="token", devices="phone")

    @patch("encodebox.push.requests.post")
    def test_disabled(self, mock_post: MagicMock) -> None:
        with patch.object(push.config, "pushover", None):
            push.send("hello")

        mock_post.assert_not_called()

    @patch("encodebox.push.requests.post")
    def test_send(self, mock_post: MagicMock, pushover: PushoverConfig) -> None:
        mock_post.return_value = MagicMock(ok=True)

        with patch.object(push.config, "pushover", pushover):
            push.send("movie.mkv has failed to encode", title="encoding error")

        data = mock_post.call_args.kwargs["data"]
        assert data["token"] == "token"
        assert data["user"] == "user"
        assert data["device"] == "phone"
        assert data["title"] == "encoding error"
        assert "url" not in data

    @patch("encodebox.push.requests.post", side_effect=requests.ConnectionError)
    def test_unreachable(self, mock_post: MagicMock, pushover: PushoverConfig) -> None:
        with patch.object(push.config, "pushover", pushover):
            push.send("hello")

        mock_post.assert_called_once()
