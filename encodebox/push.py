import logging

import requests

from encodebox.config import config

logger = logging.getLogger(__name__)


def send(msg: str, title: str | None = None, url: str | None = None, priority: int = 0) -> None:
    if config.pushover is None:
        return

    data = {
        "token": config.pushover.api_key,
        "user": config.pushover.user_key,
        "message": msg,
        "priority": priority,
        "device": config.pushover.devices,
    }

    if title is not None:
        data["title"] = title

    if url is not None:
        data["url"] = url

    try:
        r = requests.post("https://api.pushover.net/1/messages.json", data=data, timeout=10)
    except requests.RequestException:
        logger.warning("could not reach pushover", exc_info=True)
        return

    if not r.ok:
        logger.warning(f"pushover rejected notification ({r.status_code}): {r.text}")
