import copy
import logging
import os
from pathlib import Path
from typing import Any, TypedDict

import tomli
import tomli_w


class AgentConfig(TypedDict, total=False):
    command: list[str]
    log_level: str
    request_timeout: float
    startup_timeout: float
    env: dict[str, str]


class CredentialsConfig(TypedDict, total=False):
    endpoint: str
    token_env: str
    redacted_token: str


class TestingConfig(TypedDict, total=False):
    async_wait_timeout: float
    poll_interval: float
    poll_max_attempts: int
    error_lens_command: str
    accept_lens_command: str
    recording_hint: str


class Config(TypedDict, total=False):
    agent: AgentConfig
    credentials: CredentialsConfig
    testing: TestingConfig


def get_cache_dir() -> Path:
    xdg = os.environ.get("XDG_CACHE_HOME")
    if xdg:
        base = Path(xdg)
    else:
        base = Path.home() / ".cache"
    return base / "lensprobe"


def get_config_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        base = Path(xdg)
    else:
        base = Path.home() / ".config"
    return base / "lensprobe"


def get_config_path() -> Path:
    return get_config_dir() / "config.toml"


def get_log_dir() -> Path:
    return get_cache_dir() / "log"


RECORDING_HINT = (
    "To fix this problem please re-run the tests in recording mode.\n"
    "You need to export access tokens first so the agent can record the missing interactions."
)

DEFAULT_CONFIG: Config = {
    "agent": {
        "command": ["node", "agent/dist/index.js", "api", "jsonrpc-stdio"],
        "log_level": "info",
        "request_timeout": 30,
        "startup_timeout": 20,
    },
    "credentials": {
        "endpoint": "https://sourcegraph.com",
        "token_env": "LENSPROBE_ACCESS_TOKEN",
        "redacted_token": "REDACTED",
    },
    "testing": {
        "async_wait_timeout": 20,
        "poll_interval": 1.0,
        "poll_max_attempts": 10,
        "error_lens_command": "cody.fixup.codelens.error",
        "accept_lens_command": "cody.fixup.codelens.accept",
        "recording_hint": RECORDING_HINT,
    },
}


def load_config() -> Config:
    config_path = get_config_path()
    config: Config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path.exists():
        with open(config_path, "rb") as f:
            user_config = tomli.load(f)
            _merge_config(config, user_config)

    _apply_env_overrides(config)
    return config


def save_config(config: Config) -> None:
    config_path = get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "wb") as f:
        tomli_w.dump(config, f)


def _merge_config(base: dict, override: dict) -> None:
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _merge_config(base[key], value)
        else:
            base[key] = value


def _apply_env_overrides(config: Config) -> None:
    request_timeout = os.environ.get("LENSPROBE_REQUEST_TIMEOUT")
    if request_timeout:
        config.setdefault("agent", {})["request_timeout"] = float(request_timeout)

    wait_timeout = os.environ.get("LENSPROBE_ASYNC_WAIT_TIMEOUT")
    if wait_timeout:
        config.setdefault("testing", {})["async_wait_timeout"] = float(wait_timeout)


def get_access_token(config: Config) -> str:
    """Return the real access token if exported, else the redacted placeholder.

    Replaying recorded interactions only needs the redacted token; the real one
    is required when recording.
    """
    credentials = config.get("credentials", {})
    token_env = credentials.get("token_env", "LENSPROBE_ACCESS_TOKEN")
    token = os.environ.get(token_env)
    if token:
        return token
    return credentials.get("redacted_token", "REDACTED")


def configure_logging(level: str = "info", log_file: Path | None = None) -> Path:
    if log_file is None:
        log_dir = get_log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / "lensprobe.log"

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(threadName)s - %(message)s",
        handlers=[
            logging.FileHandler(log_file),
        ],
    )
    return log_file


def get_setting(config: Config, section: str, key: str) -> Any:
    value = config.get(section, {}).get(key)
    if value is None:
        return DEFAULT_CONFIG[section][key]
    return value
