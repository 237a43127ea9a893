"""Tests for EngineConfig."""

import dataclasses

import pytest

from dashflow import ConfigError, EngineConfig


class TestEngineConfig:
    def test_defaults(self):
        config = EngineConfig()
        assert config.equality_cutoff is False
        assert config.none_is_missing is True
        assert config.max_flush_passes == 100

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            EngineConfig().equality_cutoff = True

    def test_rejects_bad_pass_limit(self):
        with pytest.raises(ConfigError):
            EngineConfig(max_flush_passes=0)

    def test_from_mapping(self):
        config = EngineConfig.from_mapping({"equality_cutoff": True, "max_flush_passes": 5})
        assert config.equality_cutoff is True
        assert config.max_flush_passes == 5

    def test_from_mapping_unknown_key(self):
        with pytest.raises(ConfigError, match="Unknown config keys: colour"):
            EngineConfig.from_mapping({"colour": "red"})

    def test_from_mapping_wrong_type(self):
        with pytest.raises(ConfigError, match="equality_cutoff must be bool"):
            EngineConfig.from_mapping({"equality_cutoff": "yes"})

    def test_none_not_missing(self):
        from dashflow import Session

        s = Session(EngineConfig(none_is_missing=False))
        s.define_source("o", None)
        assert s.read("o") is None
