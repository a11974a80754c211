"""JSON Schema-based validation for viewdns YAML configuration.

This module validates the parsed ``viewdns.yaml`` mapping against the JSON
Schema document stored under ``assets/config-schema.json``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from jsonschema import Draft202012Validator, ValidationError
from jsonschema.exceptions import SchemaError

from ..errors import ConfigError

logger = logging.getLogger("viewdns.config")


def get_default_schema_path() -> Path:
    """Brief: Resolve the default JSON Schema path for configuration.

    Inputs:
      - None.

    Outputs:
      - Path to ``assets/config-schema.json`` in the nearest ancestor that has
        one (source checkout), else ``/usr/share/viewdns/config-schema.json``.
    """

    here = Path(__file__).resolve()
    for ancestor in here.parents:
        candidate = ancestor / "assets" / "config-schema.json"
        if candidate.is_file():
            return candidate
    return Path("/usr/share/viewdns/config-schema.json")


def _load_schema(schema_path: Optional[Path] = None) -> Dict[str, Any]:
    path = schema_path or get_default_schema_path()
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def _format_errors(errors: List[ValidationError], *, config_path: Optional[str]) -> str:
    """Brief: Format jsonschema validation errors into a human-readable string.

    Inputs:
      - errors: List of jsonschema.ValidationError instances.
      - config_path: Optional path to the YAML config being validated.

    Outputs:
      - String suitable for display in logs or CLI output.
    """

    lines: List[str] = [f"Invalid configuration in {config_path or '<config dict>'}:"]
    for err in errors:
        instance_path = "/".join(str(p) for p in err.path) or "<root>"
        lines.append(f"- {instance_path}: {err.message}")
    return "\n".join(lines)


def _split_extra_property_errors(
    errors: List[ValidationError],
) -> tuple[List[ValidationError], List[ValidationError]]:
    """Partition validation errors into (unexpected-property, other) lists."""

    extra: List[ValidationError] = []
    other: List[ValidationError] = []
    for err in errors:
        if getattr(err, "validator", None) == "additionalProperties":
            extra.append(err)
        else:
            other.append(err)
    return extra, other


def validate_config(
    cfg: Dict[str, Any],
    *,
    schema_path: Optional[Path] = None,
    config_path: Optional[str] = None,
    unknown_keys: str = "warn",
) -> None:
    """Brief: Validate a parsed YAML configuration mapping against JSON Schema.

    Inputs:
      - cfg: Dict loaded from YAML (top-level configuration mapping).
      - schema_path: Optional explicit path to JSON Schema file. When omitted,
        the default ``assets/config-schema.json`` is used.
      - config_path: Optional string path to the YAML file, used only for
        error messages.
      - unknown_keys: "ignore", "warn" (default) or "error" for keys the
        schema does not describe.

    Outputs:
      - None on success.

    Raises:
      - ConfigError: when validation fails, or when ``unknown_keys`` is
        "error" and unexpected keys are present. The message lists every
        offending instance path.

    Example:
      >>> import yaml
      >>> data = yaml.safe_load("upstream: 1.1.1.1:53\\nviews: [{name: all, sources: [0.0.0.0/0]}]")
      >>> validate_config(data)  # does not raise for valid config
    """
    if unknown_keys not in {"ignore", "warn", "error"}:
        raise ValueError(
            f"unknown_keys policy must be 'ignore', 'warn', or 'error', got {unknown_keys!r}"
        )
    if not isinstance(cfg, dict):
        raise ConfigError(
            f"Invalid configuration in {config_path or '<config dict>'}: "
            "top level must be a mapping"
        )

    effective_schema_path = schema_path or get_default_schema_path()
    if not effective_schema_path.is_file():
        logger.warning(
            "Configuration schema file %s not found; skipping JSON Schema validation",
            effective_schema_path,
        )
        return None

    try:
        schema = _load_schema(effective_schema_path)
        validator = Draft202012Validator(schema)
    except (OSError, json.JSONDecodeError, SchemaError) as exc:
        logger.warning(
            "Failed to load configuration schema at %s: %s; "
            "skipping JSON Schema validation",
            effective_schema_path,
            exc,
        )
        return None

    all_errors = sorted(validator.iter_errors(cfg), key=lambda e: list(e.path))
    if not all_errors:
        return None

    extra_errors, other_errors = _split_extra_property_errors(all_errors)
    if other_errors:
        raise ConfigError(
            _format_errors(other_errors + extra_errors, config_path=config_path)
        )

    message = _format_errors(extra_errors, config_path=config_path)
    if unknown_keys == "warn":
        logger.warning(message)
    elif unknown_keys == "error":
        raise ConfigError(message)
    return None
