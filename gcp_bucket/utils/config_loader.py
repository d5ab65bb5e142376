"""
Resize preset loader and validator.

Loads YAML files declaring named sets of image variants, validates them, and
turns a preset into ResizeSpec objects for LogicalFile.resize_options.

Example config file (config/presets.yaml):
    ```yaml
    version: "1.0"

    presets:
      avatar:
        - prefix: small-
          width: 64
          height: 64
          fit: cover
          format:
            extension: webp
            options:
              quality: 80
        - prefix: medium-
          width: 256

      banner:
        - prefix: wide-
          width: 1600
          height: 400
          fit: inside
    ```

Usage:
    >>> config = load_config("config/presets.yaml")
    >>> errors = validate_config(config)
    >>> if not errors:
    ...     specs = build_resize_specs(config, "avatar")
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from gcp_bucket.models import SUPPORTED_FORMAT_EXTENSIONS, Fit, FormatSpec, ResizeSpec
from gcp_bucket.utils.logging import get_logger

logger = get_logger(__name__)

SUPPORTED_VERSIONS = ["1.0"]

VALID_FITS = [fit.value for fit in Fit]


@dataclass
class ConfigError:
    """Validation error in configuration file."""

    field: str
    message: str
    value: Optional[Any] = None

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.field}: {self.message} (got: {self.value})"
        return f"{self.field}: {self.message}"


def load_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load preset configuration from YAML file.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If path is not a file, or the file is empty
        yaml.YAMLError: If YAML is malformed
    """
    path = Path(config_path)
    logger.info(f"Loading preset configuration from: {path}")

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    if not path.is_file():
        raise ValueError(f"Configuration path is not a file: {path}")

    try:
        with open(path, "r") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML: {e}")
        raise

    if config is None:
        raise ValueError("Configuration file is empty")
    if not isinstance(config, dict):
        raise ValueError(f"Configuration root must be a mapping, got {type(config).__name__}")

    logger.info(f"Configuration loaded: {len(config.get('presets') or {})} preset(s)")
    return dict(config)


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _validate_variant(prefix: str, variant: Any) -> List[ConfigError]:
    errors: List[ConfigError] = []

    if not isinstance(variant, dict):
        return [ConfigError(prefix, "Must be a mapping", type(variant).__name__)]

    if "prefix" not in variant:
        errors.append(ConfigError(f"{prefix}.prefix", "Missing required field"))
    elif not isinstance(variant["prefix"], str):
        errors.append(
            ConfigError(f"{prefix}.prefix", "Must be a string", type(variant["prefix"]).__name__)
        )

    for dimension in ["width", "height"]:
        if dimension in variant and not _is_positive_int(variant[dimension]):
            errors.append(
                ConfigError(f"{prefix}.{dimension}", "Must be a positive integer", variant[dimension])
            )

    if "fit" in variant and variant["fit"] not in VALID_FITS:
        errors.append(
            ConfigError(f"{prefix}.fit", f"Invalid fit (valid: {VALID_FITS})", variant["fit"])
        )

    if "file_name" in variant and not isinstance(variant["file_name"], str):
        errors.append(ConfigError(f"{prefix}.file_name", "Must be a string", variant["file_name"]))

    if "format" in variant:
        fmt = variant["format"]
        if isinstance(fmt, str):
            fmt = {"extension": fmt}
        if not isinstance(fmt, dict) or "extension" not in fmt:
            errors.append(ConfigError(f"{prefix}.format", "Must be an extension or a mapping with 'extension'"))
        else:
            extension = str(fmt["extension"]).lower().lstrip(".")
            if extension not in SUPPORTED_FORMAT_EXTENSIONS:
                errors.append(
                    ConfigError(
                        f"{prefix}.format.extension",
                        f"Invalid format (valid: {SUPPORTED_FORMAT_EXTENSIONS})",
                        fmt["extension"],
                    )
                )
            if "options" in fmt and not isinstance(fmt["options"], dict):
                errors.append(ConfigError(f"{prefix}.format.options", "Must be a mapping"))

    return errors


def validate_config(config: Dict[str, Any]) -> List[ConfigError]:
    """
    Validate preset configuration against the expected schema.

    Returns:
        List of validation errors (empty if valid)
    """
    errors: List[ConfigError] = []

    if "version" not in config:
        errors.append(ConfigError("version", "Missing required field"))
    elif str(config["version"]) not in SUPPORTED_VERSIONS:
        errors.append(
            ConfigError(
                "version",
                f"Unsupported version (supported: {SUPPORTED_VERSIONS})",
                config["version"],
            )
        )

    presets = config.get("presets")
    if presets is None:
        errors.append(ConfigError("presets", "Missing required field"))
    elif not isinstance(presets, dict):
        errors.append(ConfigError("presets", "Must be a mapping", type(presets).__name__))
    else:
        if not presets:
            errors.append(ConfigError("presets", "Must contain at least one preset"))
        for name, variants in presets.items():
            prefix = f"presets.{name}"
            if not isinstance(variants, list) or not variants:
                errors.append(ConfigError(prefix, "Must be a non-empty list of variants"))
                continue
            for i, variant in enumerate(variants):
                errors.extend(_validate_variant(f"{prefix}[{i}]", variant))

    if errors:
        logger.warning(f"Configuration validation failed with {len(errors)} errors")
    else:
        logger.info("Configuration validation passed")

    return errors


def _build_format(fmt: Any) -> Optional[FormatSpec]:
    if fmt is None:
        return None
    if isinstance(fmt, str):
        return FormatSpec(extension=fmt)
    return FormatSpec(extension=fmt["extension"], options=dict(fmt.get("options") or {}))


def build_resize_specs(config: Dict[str, Any], preset: str) -> List[ResizeSpec]:
    """
    Build ResizeSpec objects for one preset of a validated configuration.

    Raises:
        ValueError: If the configuration is invalid or the preset is unknown
    """
    errors = validate_config(config)
    if errors:
        raise ValueError("Invalid preset configuration: " + "; ".join(str(e) for e in errors))

    presets = config["presets"]
    if preset not in presets:
        raise ValueError(f"Unknown preset {preset!r} (available: {sorted(presets)})")

    return [
        ResizeSpec(
            file_resize_prefix=variant["prefix"],
            width=variant.get("width"),
            height=variant.get("height"),
            fit=Fit(variant["fit"]) if "fit" in variant else None,
            file_name=variant.get("file_name"),
            format=_build_format(variant.get("format")),
        )
        for variant in presets[preset]
    ]
