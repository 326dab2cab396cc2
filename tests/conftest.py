from __future__ import annotations

import os
from pathlib import Path

import pytest

from degiro_proxy.config import AppConfig


@pytest.fixture(autouse=True)
def clear_proxy_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ.keys()):
        if key.startswith("DEGIRO_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    return AppConfig.model_validate(
        {
            "degiro": {"min_request_gap_seconds": 0},
            "logging": {"log_file": str(tmp_path / "degiro-proxy.log")},
        }
    )
