"""Configuration loading and validation for the identity intelligence system.

This module loads system configuration from a YAML file, applies environment
overrides for the Google Cloud recognition settings (read from ``.env`` with
python-dotenv), resolves relative paths against the project root, and
validates the recognition setup.

Typical usage example:
    config = Config.load()
    errors = Config.validate(config)
    if errors:
        raise ConfigurationError(f"Configuration invalid: {errors}")
    registry = ProcessorRegistry.from_config(config)
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from ..models.data_structures import DocumentSide, DocumentType
from .error_handlers import ConfigurationError

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent.parent

DEFAULT_CONFIG_PATH = "config/system_config.yaml"

# Environment variable -> (section key path inside "recognition")
ENV_OVERRIDES = {
    "GCP_PROJECT_ID": ("project_id",),
    "GCP_LOCATION": ("location",),
    "GCP_KEY_FILE": ("key_file",),
    "PROCESSOR_ID_CIN_FRONT": ("processors", "id", "front"),
    "PROCESSOR_ID_CIN_BACK": ("processors", "id", "back"),
    "PROCESSOR_ID_DRIVER_FRONT": ("processors", "license", "front"),
    "PROCESSOR_ID_DRIVER_BACK": ("processors", "license", "back"),
}

PROCESSOR_ID_PATTERN = re.compile(r"^[a-zA-Z0-9]+$")

DEFAULT_ALLOWED_MIME_TYPES = [
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/bmp",
    "image/webp",
    "application/pdf",
]


class SystemConfig:
    """Container for system configuration parameters.

    Attributes:
        recognition: Google Cloud project, location, key file, processors
            per document type and side, and upload limits.
        entity_mapping: Optional extra label mapping file.
        defaults: Default-value policy (enabled, gender, nationality).
        reconciliation: Worker count and field validation switch.
        logging: Logging configuration.
    """

    def __init__(self, **config_dict: Dict[str, Any]) -> None:
        """Initialize SystemConfig from configuration dictionary.

        Args:
            **config_dict: Configuration dictionary with required key
                ``recognition``; all other sections are optional.

        Raises:
            KeyError: If the recognition section is missing.
        """
        if "recognition" not in config_dict:
            raise KeyError("Missing required configuration sections: ['recognition']")

        self.recognition: Dict[str, Any] = config_dict["recognition"] or {}
        self.entity_mapping: Dict[str, Any] = config_dict.get("entity_mapping") or {}
        self.defaults: Dict[str, Any] = config_dict.get("defaults") or {}
        self.reconciliation: Dict[str, Any] = config_dict.get("reconciliation") or {}
        self.logging: Dict[str, Any] = config_dict.get("logging") or {}

        self.recognition.setdefault("processors", {})
        self.recognition.setdefault("location", "us")
        self.recognition.setdefault("max_file_size_mb", 10)
        self.recognition.setdefault(
            "allowed_mime_types", list(DEFAULT_ALLOWED_MIME_TYPES)
        )
        self.recognition.setdefault("default_mime_type", "image/jpeg")

    def processor_id(
        self, document_type: DocumentType, side: DocumentSide
    ) -> Optional[str]:
        """Return the configured processor id for a document type and side."""
        processors = self.recognition.get("processors") or {}
        per_type = processors.get(document_type.value) or {}
        value = per_type.get(side.value)
        return str(value) if value else None


class ProcessorRegistry:
    """Resolves fully-qualified Document AI processor names.

    Names have the form
    ``projects/{project}/locations/{location}/processors/{id}``.
    """

    def __init__(
        self,
        project_id: str,
        location: str,
        processor_ids: Dict[DocumentType, Dict[DocumentSide, str]],
    ) -> None:
        self.project_id = project_id
        self.location = location
        self._processor_ids = processor_ids

    @classmethod
    def from_config(cls, config: SystemConfig) -> "ProcessorRegistry":
        processor_ids: Dict[DocumentType, Dict[DocumentSide, str]] = {}
        for document_type in DocumentType:
            for side in DocumentSide:
                value = config.processor_id(document_type, side)
                if value:
                    processor_ids.setdefault(document_type, {})[side] = value
        return cls(
            project_id=str(config.recognition.get("project_id") or ""),
            location=str(config.recognition.get("location") or "us"),
            processor_ids=processor_ids,
        )

    def resolve(self, document_type: DocumentType, side: DocumentSide) -> str:
        """Return the processor name for a document type and side.

        Raises:
            ConfigurationError: If the project or the processor is not configured.
        """
        if not self.project_id:
            raise ConfigurationError(
                "Google Cloud project id is not configured",
                config_key="recognition.project_id",
            )

        processor_id = self._processor_ids.get(document_type, {}).get(side)
        if not processor_id:
            raise ConfigurationError(
                f"No processor configured for {document_type.value} {side.value}",
                config_key=f"recognition.processors.{document_type.value}.{side.value}",
            )

        return (
            f"projects/{self.project_id}/locations/{self.location}"
            f"/processors/{processor_id}"
        )


class Config:
    """Static utility class for loading and validating configuration files."""

    # Configuration keys that hold paths relative to the project root
    _RELATIVE_PATH_KEYS = [
        "recognition.key_file",
        "entity_mapping.mapping_file",
    ]

    @staticmethod
    def _resolve_nested_path(
        config_dict: Dict[str, Any], key_path: str, project_root: Path
    ) -> None:
        """Resolve an optional nested config path to an absolute path in-place.

        Missing sections or empty values are left untouched.
        """
        keys = key_path.split(".")
        current = config_dict

        for key in keys[:-1]:
            current = current.get(key)
            if not isinstance(current, dict):
                return

        final_key = keys[-1]
        value = current.get(final_key)
        if not value:
            return
        path = Path(value).expanduser()
        if not path.is_absolute():
            path = project_root / path
        current[final_key] = str(path)

    @staticmethod
    def _apply_env_overrides(config_dict: Dict[str, Any]) -> None:
        """Override recognition settings from environment variables."""
        recognition = config_dict.setdefault("recognition", {}) or {}
        config_dict["recognition"] = recognition

        for env_name, key_path in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if not value:
                continue
            current = recognition
            for key in key_path[:-1]:
                if not isinstance(current.get(key), dict):
                    current[key] = {}
                current = current[key]
            current[key_path[-1]] = value
            logger.debug(f"Configuration override from {env_name}")

    @staticmethod
    def from_dict(
        config_dict: Dict[str, Any], project_root: Optional[Path] = None
    ) -> SystemConfig:
        """Build a SystemConfig from an in-memory dictionary.

        Args:
            config_dict: Parsed configuration.
            project_root: Base directory for relative paths. Defaults to the
                project root.

        Raises:
            ConfigurationError: If the dictionary is malformed.
        """
        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration must be a dictionary")

        root = project_root or PROJECT_ROOT
        for path_key in Config._RELATIVE_PATH_KEYS:
            Config._resolve_nested_path(config_dict, path_key, root)

        try:
            return SystemConfig(**config_dict)
        except KeyError as e:
            raise ConfigurationError(str(e), config_key="recognition") from e

    @staticmethod
    def load(
        config_path: Optional[str] = DEFAULT_CONFIG_PATH,
        env_file: Optional[str] = ".env",
    ) -> SystemConfig:
        """Load system configuration from a YAML file.

        Environment variables (optionally read from ``env_file``) override
        the recognition section. Relative paths are resolved against the
        project root.

        Args:
            config_path: Path to the configuration YAML file, absolute or
                relative to the project root.
            env_file: Optional dotenv file, relative to the project root.

        Returns:
            SystemConfig object containing the loaded configuration.

        Raises:
            ConfigurationError: If the file is missing, not valid YAML, or
                does not contain a dictionary.
        """
        if env_file:
            env_path = Path(env_file)
            if not env_path.is_absolute():
                env_path = PROJECT_ROOT / env_path
            if env_path.exists():
                load_dotenv(env_path, override=False)

        config_file_path = Path(config_path or DEFAULT_CONFIG_PATH)
        if not config_file_path.is_absolute():
            config_file_path = PROJECT_ROOT / config_file_path

        if not config_file_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {config_file_path}",
                config_key="config_path",
            )

        try:
            with open(config_file_path, "r", encoding="utf-8") as f:
                config_dict = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse configuration file: {config_file_path}",
                config_key="config_path",
                original_error=e,
            ) from e

        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                "Configuration file must contain a YAML dictionary",
                config_key="config_path",
            )

        Config._apply_env_overrides(config_dict)
        config = Config.from_dict(config_dict)
        logger.info(f"Configuration loaded from {config_file_path}")
        return config

    @staticmethod
    def validate(config: SystemConfig) -> List[str]:
        """Validate the recognition setup.

        Checks project id, processor ids for every document type and side,
        processor id format, key file existence, and numeric limits.

        Args:
            config: SystemConfig object to validate.

        Returns:
            List of problems found. Empty list if the configuration is usable.
        """
        errors: List[str] = []
        recognition = config.recognition

        if not recognition.get("project_id"):
            errors.append("Missing recognition.project_id (GCP_PROJECT_ID)")

        for document_type in DocumentType:
            for side in DocumentSide:
                key = f"recognition.processors.{document_type.value}.{side.value}"
                processor_id = config.processor_id(document_type, side)
                if not processor_id:
                    errors.append(f"Missing processor id for {key}")
                elif not PROCESSOR_ID_PATTERN.match(processor_id):
                    errors.append(
                        f"Processor id for {key} has unusual format: {processor_id}"
                    )

        key_file = recognition.get("key_file")
        if key_file and not Path(key_file).is_file():
            errors.append(f"Key file not found for recognition.key_file: {key_file}")

        max_size = recognition.get("max_file_size_mb")
        if not isinstance(max_size, (int, float)) or max_size <= 0:
            errors.append(
                f"recognition.max_file_size_mb must be positive, got {max_size}"
            )

        mapping_file = config.entity_mapping.get("mapping_file")
        if mapping_file and not Path(mapping_file).is_file():
            errors.append(
                f"Mapping file not found for entity_mapping.mapping_file: "
                f"{mapping_file}"
            )

        max_workers = config.reconciliation.get("max_workers", 4)
        if not isinstance(max_workers, int) or not 1 <= max_workers <= 4:
            errors.append(
                f"reconciliation.max_workers must be between 1 and 4, "
                f"got {max_workers}"
            )

        return errors
