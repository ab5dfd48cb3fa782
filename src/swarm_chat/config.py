"""
Client configuration.

Read from ~/.swarm-chat/config.json, then overridden by SWARM_CHAT_API_KEY,
SWARM_CHAT_BASE_URL and SWARM_CHAT_EVENTS_URL. A missing or unreadable file
means defaults.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ValidationError

from swarm_chat.transport.http import DEFAULT_BASE_URL
from swarm_chat.transport.sse import DEFAULT_EVENTS_URL
from swarm_chat.typewriter import DEFAULT_INTERVAL_S

logger = logging.getLogger(__name__)

CONFIG_FILE = Path.home() / ".swarm-chat" / "config.json"

ENV_OVERRIDES = {
    "SWARM_CHAT_API_KEY": "api_key",
    "SWARM_CHAT_BASE_URL": "base_url",
    "SWARM_CHAT_EVENTS_URL": "events_url",
}


class ChatConfig(BaseModel):
    base_url: str = DEFAULT_BASE_URL
    events_url: str = DEFAULT_EVENTS_URL
    api_key: Optional[str] = None
    typing_interval_s: float = DEFAULT_INTERVAL_S
    burn_lookup_attempts: int = 3
    burn_lookup_backoff_s: float = 2.0
    title_max_length: int = 30


def _read_file(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def load_config(path: Optional[Path] = None, env: Optional[dict[str, str]] = None) -> ChatConfig:
    path = path or CONFIG_FILE
    env = os.environ if env is None else env
    data = _read_file(path)
    for var, field in ENV_OVERRIDES.items():
        if env.get(var):
            data[field] = env[var]
    try:
        return ChatConfig.model_validate(data)
    except ValidationError as e:
        logger.warning("Ignoring invalid config in %s: %s", path, e)
        return ChatConfig()


def save_config(config: ChatConfig, path: Optional[Path] = None) -> None:
    path = path or CONFIG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config.model_dump(exclude_defaults=True), indent=2))
