"""
Unit tests for config_loader module.
"""

import os

import pytest
import yaml

from identity_intelligence.models.data_structures import DocumentSide, DocumentType
from identity_intelligence.utils.config_loader import (
    Config,
    ProcessorRegistry,
    SystemConfig,
)
from identity_intelligence.utils.error_handlers import ConfigurationError


def complete_config_dict():
    return {
        "recognition": {
            "project_id": "test-project",
            "location": "eu",
            "processors": {
                "id": {"front": "abc123", "back": "def456"},
                "license": {"front": "ghi789", "back": "jkl012"},
            },
        },
        "reconciliation": {"max_workers": 2},
    }


@pytest.fixture
def config_file(tmp_path):
    """Write a complete configuration file."""
    path = tmp_path / "system_config.yaml"
    path.write_text(yaml.safe_dump(complete_config_dict()), encoding="utf-8")
    return path


class TestSystemConfig:
    """Tests for SystemConfig class."""

    def test_defaults_applied(self):
        config = SystemConfig(recognition={})

        assert config.recognition["location"] == "us"
        assert config.recognition["max_file_size_mb"] == 10
        assert "application/pdf" in config.recognition["allowed_mime_types"]
        assert config.defaults == {}

    def test_missing_recognition(self):
        with pytest.raises(KeyError):
            SystemConfig(defaults={})

    def test_processor_id(self):
        config = SystemConfig(**complete_config_dict())

        assert config.processor_id(DocumentType.LICENSE, DocumentSide.BACK) == "jkl012"


class TestConfigLoad:
    """Tests for Config.load and Config.from_dict."""

    def test_load_file(self, config_file, clean_env):
        config = Config.load(str(config_file), env_file=None)

        assert config.recognition["project_id"] == "test-project"
        assert config.reconciliation["max_workers"] == 2

    def test_environment_overrides(self, config_file, clean_env, monkeypatch):
        monkeypatch.setenv("GCP_PROJECT_ID", "env-project")
        monkeypatch.setenv("PROCESSOR_ID_DRIVER_BACK", "envback1")

        config = Config.load(str(config_file), env_file=None)

        assert config.recognition["project_id"] == "env-project"
        assert config.processor_id(DocumentType.LICENSE, DocumentSide.BACK) == "envback1"
        assert config.processor_id(DocumentType.ID, DocumentSide.FRONT) == "abc123"

    def test_env_file(self, config_file, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("PROCESSOR_ID_CIN_FRONT=fromdotenv\n", encoding="utf-8")

        try:
            config = Config.load(str(config_file), env_file=str(env_file))
        finally:
            os.environ.pop("PROCESSOR_ID_CIN_FRONT", None)

        assert config.processor_id(DocumentType.ID, DocumentSide.FRONT) == "fromdotenv"

    def test_bundled_config(self, clean_env):
        config = Config.load(env_file=None)

        assert config.recognition["location"] == "us"
        assert config.defaults["enabled"] is True
        assert config.reconciliation["max_workers"] == 4

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            Config.load(str(tmp_path / "missing.yaml"), env_file=None)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("recognition: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="parse"):
            Config.load(str(path), env_file=None)

    def test_not_a_dictionary(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="dictionary"):
            Config.load(str(path), env_file=None)

    def test_from_dict_missing_recognition(self):
        with pytest.raises(ConfigurationError):
            Config.from_dict({"defaults": {}})

    def test_relative_paths_resolved(self, tmp_path):
        config = Config.from_dict(
            {"recognition": {"key_file": "keys/sa.json"}}, project_root=tmp_path
        )

        assert config.recognition["key_file"] == str(tmp_path / "keys" / "sa.json")

    def test_empty_paths_untouched(self, tmp_path):
        config = Config.from_dict(
            {"recognition": {"key_file": ""}, "entity_mapping": {"mapping_file": ""}},
            project_root=tmp_path,
        )

        assert config.recognition["key_file"] == ""
        assert config.entity_mapping["mapping_file"] == ""


class TestConfigValidate:
    """Tests for Config.validate."""

    def test_complete_config(self):
        config = Config.from_dict(complete_config_dict())

        assert Config.validate(config) == []

    def test_empty_config(self):
        errors = Config.validate(Config.from_dict({"recognition": {}}))

        assert any("project_id" in e for e in errors)
        assert len([e for e in errors if "Missing processor id" in e]) == 4

    def test_unusual_processor_id(self):
        data = complete_config_dict()
        data["recognition"]["processors"]["id"]["front"] = "abc-123"

        errors = Config.validate(Config.from_dict(data))

        assert errors == [
            "Processor id for recognition.processors.id.front has unusual format: abc-123"
        ]

    def test_missing_key_file(self, tmp_path):
        data = complete_config_dict()
        data["recognition"]["key_file"] = str(tmp_path / "missing.json")

        errors = Config.validate(Config.from_dict(data))

        assert len(errors) == 1
        assert "Key file not found" in errors[0]

    def test_invalid_workers(self):
        data = complete_config_dict()
        data["reconciliation"]["max_workers"] = 9

        errors = Config.validate(Config.from_dict(data))

        assert any("max_workers" in e for e in errors)


class TestProcessorRegistry:
    """Tests for ProcessorRegistry class."""

    def test_resolve(self):
        registry = ProcessorRegistry.from_config(Config.from_dict(complete_config_dict()))

        name = registry.resolve(DocumentType.ID, DocumentSide.BACK)

        assert name == "projects/test-project/locations/eu/processors/def456"

    def test_missing_processor(self):
        data = complete_config_dict()
        del data["recognition"]["processors"]["license"]
        registry = ProcessorRegistry.from_config(Config.from_dict(data))

        with pytest.raises(ConfigurationError) as exc_info:
            registry.resolve(DocumentType.LICENSE, DocumentSide.FRONT)

        assert exc_info.value.config_key == "recognition.processors.license.front"

    def test_missing_project(self):
        registry = ProcessorRegistry("", "us", {DocumentType.ID: {DocumentSide.FRONT: "abc"}})

        with pytest.raises(ConfigurationError, match="project"):
            registry.resolve(DocumentType.ID, DocumentSide.FRONT)
