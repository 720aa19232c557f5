import os
import tempfile
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)
from typing_extensions import override

_config_path = os.getenv("EB_CONFIG_PATH")

if _config_path is None:
    if home := os.getenv("HOME"):
        _path = Path(home) / ".config" / "encodebox" / "config.yaml"
        if _path.is_file():
            _config_path = str(_path.resolve())

    if xdg_config_home := os.getenv("XDG_CONFIG_HOME"):
        _path = Path(xdg_config_home) / "encodebox" / "config.yaml"
        if _path.is_file():
            _config_path = str(_path.resolve())

    if Path("config.yaml").is_file():
        _config_path = "config.yaml"


class MediaConfig(BaseModel):
    root: Path = Field(Path("/data"), description="Folder scanned for source files")
    extension: str = Field(".mkv", description="Container extension of source files")

    @field_validator("extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        if not v.startswith("."):
            raise ValueError("extension must start with a dot")
        return v.lower()


class EncodingConfig(BaseModel):
    output_dir: Path = Field(Path("/output"), description="Folder encoded files are written to")
    ffmpeg_path: str = Field("ffmpeg", description="ffmpeg binary used for encoding")
    ffprobe_path: str = Field("ffprobe", description="ffprobe binary used for inspection")
    log_dir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "encodebox",
        description="Folder for per-job ffmpeg transcripts",
    )
    size_sample_interval: float = Field(
        2.0, gt=0, description="Seconds between output size samples"
    )

    video_codec: str = Field("libx265", description="Default video codec")
    video_preset: str = Field("veryslow", description="Default x264/x265 preset")
    video_crf: int = Field(18, ge=0, le=51, description="Default x264/x265 CRF")
    audio_codec: str = Field("aac", description="Default audio codec")
    audio_bitrate: str = Field("160k", description="Default audio bitrate")


class InspectionConfig(BaseModel):
    screenshots_dir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "encodebox" / "screenshots",
        description="Cache folder for preview frames",
    )
    screenshot_count: int = Field(12, gt=0, description="Preview frames per file")
    crop_sample_seconds: float = Field(5, gt=0, description="Length of each cropdetect sample")
    crop_sample_timeout: float = Field(
        120, gt=0, description="Seconds before a cropdetect sample is abandoned"
    )


class ServerConfig(BaseModel):
    host: str = Field("0.0.0.0", description="Address the HTTP API binds to")
    port: int = Field(8080, gt=0, lt=65536, description="Port the HTTP API binds to")


class PushoverConfig(BaseModel):
    user_key: str = Field(min_length=1, description="Pushover user key")
    api_key: str = Field(min_length=1, description="Pushover application API key")
    devices: str = Field(min_length=1, description="Comma-separated device names")


class Config(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="EB_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    media: MediaConfig = Field(default_factory=MediaConfig)
    encoding: EncodingConfig = Field(default_factory=EncodingConfig)
    inspection: InspectionConfig = Field(default_factory=InspectionConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    pushover: PushoverConfig | None = None

    @classmethod
    @override
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        if _config_path is None:
            return (init_settings, env_settings)

        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls, _config_path),
        )


config = Config()
