"""Tests for EngineSettings."""
import pytest

from exchange_planner.config import (
    DEFAULT_EXTENDED_FOODS_LIMIT,
    DEFAULT_TOP_FOODS_PER_BUCKET,
    EngineSettings,
)
from exchange_planner.data_layer.catalog_db import DEFAULT_CATALOG_PATH


class TestEngineSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        settings = EngineSettings.from_env({})
        assert settings.catalog_path == str(DEFAULT_CATALOG_PATH)
        assert settings.top_foods_per_bucket == DEFAULT_TOP_FOODS_PER_BUCKET
        assert settings.extended_foods_limit == DEFAULT_EXTENDED_FOODS_LIMIT

    def test_env_overrides(self):
        settings = EngineSettings.from_env({
            "EXCHANGE_PLANNER_CATALOG": "/tmp/catalog.yaml",
            "EXCHANGE_PLANNER_FOODS": "/tmp/foods.json",
            "EXCHANGE_PLANNER_TOP_N": "3",
            "EXCHANGE_PLANNER_EXTENDED_LIMIT": "50",
        })
        assert settings.catalog_path == "/tmp/catalog.yaml"
        assert settings.foods_path == "/tmp/foods.json"
        assert settings.top_foods_per_bucket == 3
        assert settings.extended_foods_limit == 50

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("EXCHANGE_PLANNER_TOP_N", "9")
        assert EngineSettings.from_env().top_foods_per_bucket == 9

    @pytest.mark.parametrize("raw", ["abc", "0", "-4"])
    def test_invalid_numbers(self, raw):
        with pytest.raises(ValueError, match="EXCHANGE_PLANNER_TOP_N"):
            EngineSettings.from_env({"EXCHANGE_PLANNER_TOP_N": raw})
