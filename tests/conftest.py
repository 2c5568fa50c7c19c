"""Pytest configuration: isolated settings for every test that asks for them."""

from __future__ import annotations

from dataclasses import replace

import pytest

from config import Settings


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        app_env="test",
        llm_provider="fake",
        llm_model="fake-model",
        max_retries=1,
        enable_cache=False,
        cache_path=str(tmp_path / "cache.sqlite"),
        results_dir=str(tmp_path / "results"),
        run_id="RUN-TEST",
    )


@pytest.fixture
def dev_settings(test_settings) -> Settings:
    return replace(test_settings, app_env="development")
