import logging
import logging.config
import os
from pathlib import Path
from typing import Any

from encodebox import __version__, push
from encodebox.config import config
from encodebox.correction import Inspector
from encodebox.transcoder import EncodeQueue
from encodebox.webapi import create_app


def main() -> None:
    logging_config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": True,
        "formatters": {
            "basic": {
                "class": "logging.Formatter",
                "format": "[%(asctime)s] %(levelname)s %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "class": "logging.Formatter",
                "format": (
                    "[%(asctime)s] %(levelname)s [%(name)s.%(funcName)s:%(lineno)d] %(message)s"
                ),
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
                "level": "DEBUG",
                "formatter": "detailed",
            },
        },
        "loggers": {
            "": {"level": "DEBUG", "handlers": ["console"]},
            "encodebox": {"level": "DEBUG", "handlers": [], "propagate": True},
        },
    }

    log_dir: Path | None = None

    if log_dir_str := os.getenv("EB_LOG_DIR"):
        log_dir = Path(log_dir_str).resolve()
        log_dir.mkdir(parents=True, exist_ok=True)

        logging_config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str(log_dir / "encodebox.log"),
            "maxBytes": 1024**2 * 10,  # 10 MB
            "backupCount": 20,
            "level": "INFO",
            "formatter": "basic",
        }

        logging_config["handlers"]["file_debug"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str(log_dir / "encodebox.debug.log"),
            "maxBytes": 1024**2 * 10,  # 10 MB
            "backupCount": 5,
            "level": "DEBUG",
            "formatter": "detailed",
        }

        logging_config["loggers"][""]["handlers"].extend(["file", "file_debug"])

    logging.config.dictConfig(logging_config)

    logger = logging.getLogger(__name__)

    logger.info(f"starting encodebox version {__version__}")
    logger.info(f"logging to: {log_dir}")
    logger.info(f"media root: {config.media.root} ({config.media.extension})")

    queue = EncodeQueue.from_config(config, notify=push.send)
    queue.initialize()

    inspector = Inspector.from_config(config)
    inspector.screenshots_dir.mkdir(parents=True, exist_ok=True)

    app = create_app(queue, inspector, config)

    logger.info(f"listening on http://{config.server.host}:{config.server.port}")

    app.run(host=config.server.host, port=config.server.port, threaded=True)


if __name__ == "__main__":
    main()
