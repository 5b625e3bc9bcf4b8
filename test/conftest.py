import shutil
import sys
import tempfile
from pathlib import Path

import pytest

from lensprobe.agent.types import CodeLens, Command, Position, Range
from lensprobe.utils.config import DEFAULT_CONFIG

FIXTURES_DIR = Path(__file__).parent / "fixtures"
FAKE_AGENT = FIXTURES_DIR / "fake_agent.py"


@pytest.fixture
def temp_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def isolated_config(temp_dir, monkeypatch):
    cache_dir = temp_dir / "cache"
    config_dir = temp_dir / "config"
    cache_dir.mkdir()
    config_dir.mkdir()

    monkeypatch.setenv("XDG_CACHE_HOME", str(cache_dir))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_dir))
    monkeypatch.delenv("LENSPROBE_ACCESS_TOKEN", raising=False)
    monkeypatch.delenv("LENSPROBE_REQUEST_TIMEOUT", raising=False)
    monkeypatch.delenv("LENSPROBE_ASYNC_WAIT_TIMEOUT", raising=False)

    return {"cache": cache_dir, "config": config_dir}


@pytest.fixture
def java_project(temp_dir):
    src = FIXTURES_DIR / "java_project"
    dst = temp_dir / "java_project"
    shutil.copytree(src, dst)
    return dst


@pytest.fixture
def fake_agent_config(isolated_config):
    config = {
        "agent": dict(DEFAULT_CONFIG["agent"]),
        "credentials": dict(DEFAULT_CONFIG["credentials"]),
        "testing": dict(DEFAULT_CONFIG["testing"]),
    }
    config["agent"]["command"] = [sys.executable, str(FAKE_AGENT)]
    config["agent"]["request_timeout"] = 10
    config["agent"]["startup_timeout"] = 10
    config["testing"]["async_wait_timeout"] = 5
    config["testing"]["poll_interval"] = 0.05
    return config


def make_lens(command: str | None, title: str = "", line: int = 0) -> CodeLens:
    position = Position(line=line, character=0)
    return CodeLens(
        range=Range(start=position, end=position),
        command=Command(title=title, command=command) if command is not None else None,
    )


@pytest.fixture
def lens():
    return make_lens
