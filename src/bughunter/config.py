# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Analysis configuration."""

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Literal, Mapping, cast, get_args

logger = logging.getLogger(__name__)

InferenceMode = Literal["local", "onpremise", "cloud"]
DetailLevel = Literal["fluent", "verbose"]
DiagnosticSeverity = Literal["error", "warning", "information", "hint"]

DEFAULT_ON_PREMISE_URL: str = "http://localhost:5000"
TAXONOMY_FILE_NAME: str = "cwe_list.xml"
MODEL_FILE_NAMES: dict[str, str] = {
    "line": "line_model.onnx",
    "cwe": "cwe_model.onnx",
    "sev": "sev_model.onnx",
}

# Settings keys as written by the editor, mapped to field names.
_SETTING_ALIASES: dict[str, str] = {
    "inferenceMode": "inference_mode",
    "useCUDA": "gpu",
    "onPremiseUrl": "on_premise_url",
    "cloudUrl": "cloud_url",
    "informationLevel": "detail_level",
    "detailLevel": "detail_level",
    "showLineNumber": "show_line_number",
    "showCweId": "show_cwe_id",
    "showCweType": "show_cwe_type",
    "showSeverityLevel": "show_severity_level",
    "showSeverityScore": "show_severity_score",
    "showConfidenceScore": "show_confidence_score",
    "showCweSummary": "show_cwe_summary",
    "showDescription": "show_description",
    "highlightType": "diagnostic_severity",
    "diagnosticSeverity": "diagnostic_severity",
    "maxLines": "max_indicator_lines",
    "maxIndicatorLines": "max_indicator_lines",
    "delay": "debounce_delay",
    "debounceDelay": "debounce_delay",
    "inferenceTimeout": "inference_timeout",
    "resourceDir": "resource_dir",
    "pythonExecutable": "python_executable",
    "localScript": "local_script",
}


class ConfigError(ValueError):
    """Represent an invalid configuration value."""


@dataclass(frozen=True)
class Config:
    """Settings threaded through engine selection, sessions and diagnostics.

    Attributes:
        inference_mode: Backend family: local subprocess, on-premise or cloud HTTP.
        gpu: Request GPU inference endpoints/flags.
        on_premise_url: Base URL of the on-premise inference service.
        cloud_url: Base URL of the cloud inference service.
        detail_level: ``fluent`` sentence or ``verbose`` field list messages.
        show_line_number: Verbose field toggle.
        show_cwe_id: Verbose field toggle.
        show_cwe_type: Verbose field toggle.
        show_severity_level: Verbose field toggle.
        show_severity_score: Verbose field toggle.
        show_confidence_score: Append confidences to CWE id/type fields.
        show_cwe_summary: Verbose field toggle for the weakness name.
        show_description: Emit a second diagnostic with the weakness description.
        diagnostic_severity: Severity attached to emitted diagnostics.
        max_indicator_lines: Highest-scoring lines flagged per vulnerable function.
        debounce_delay: Seconds of edit inactivity before re-analysis.
        inference_timeout: Seconds allowed for each inference call.
        resource_dir: Directory holding model files and the taxonomy XML.
        python_executable: Interpreter used by the local backend.
        local_script: Script run by the local backend; defaults to
            ``resource_dir/local.py``.
    """

    inference_mode: InferenceMode = "local"
    gpu: bool = False
    on_premise_url: str = DEFAULT_ON_PREMISE_URL
    cloud_url: str = ""
    detail_level: DetailLevel = "fluent"
    show_line_number: bool = True
    show_cwe_id: bool = True
    show_cwe_type: bool = True
    show_severity_level: bool = True
    show_severity_score: bool = True
    show_confidence_score: bool = True
    show_cwe_summary: bool = True
    show_description: bool = True
    diagnostic_severity: DiagnosticSeverity = "error"
    max_indicator_lines: int = 1
    debounce_delay: float = 1.5
    inference_timeout: float = 60.0
    resource_dir: Path = Path("resources")
    python_executable: str = "python3"
    local_script: Path | None = None

    def __post_init__(self) -> None:
        _check_choice("inference_mode", self.inference_mode, InferenceMode)
        _check_choice("detail_level", self.detail_level, DetailLevel)
        _check_choice("diagnostic_severity", self.diagnostic_severity, DiagnosticSeverity)
        if self.max_indicator_lines < 1:
            raise ConfigError("max_indicator_lines must be >= 1")
        if self.debounce_delay <= 0:
            raise ConfigError("debounce_delay must be > 0")
        if self.inference_timeout <= 0:
            raise ConfigError("inference_timeout must be > 0")
        if self.inference_mode != "local" and not self.inference_url:
            raise ConfigError(f"No inference URL configured for mode {self.inference_mode!r}")

    @property
    def inference_url(self) -> str:
        if self.inference_mode == "cloud":
            return self.cloud_url
        if self.inference_mode == "onpremise":
            return self.on_premise_url
        return ""

    @property
    def taxonomy_path(self) -> Path:
        return self.resource_dir / TAXONOMY_FILE_NAME

    @property
    def script_path(self) -> Path:
        return self.local_script or self.resource_dir / "local.py"

    def model_path(self, stage: str) -> Path:
        return self.resource_dir / MODEL_FILE_NAMES[stage]

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, object]) -> "Config":
        """Build a configuration from a settings mapping.

        Args:
            mapping: Settings keyed by field name or editor setting name.

        Returns:
            Validated configuration.

        Raises:
            ConfigError: If a value has the wrong type or is out of range.
        """
        known = {field.name: field for field in fields(cls)}
        values: dict[str, object] = {}
        for key, value in mapping.items():
            name = _SETTING_ALIASES.get(key, key)
            if name not in known:
                logger.warning(f"Ignoring unknown setting (key={key})")
                continue
            values[name] = _coerce(name, value)
        return cls(**values)  # type: ignore[arg-type]

    def merged(self, overrides: Mapping[str, object]) -> "Config":
        """Return a copy with non-``None`` overrides applied."""
        current = {field.name: getattr(self, field.name) for field in fields(self)}
        current.update(
            {key: value for key, value in overrides.items() if value is not None}
        )
        return Config.from_mapping(current)


def _check_choice(name: str, value: object, choices: object) -> None:
    allowed = get_args(choices)
    if value not in allowed:
        raise ConfigError(
            f"Invalid {name}: {value!r} (expected one of {', '.join(allowed)})"
        )


def _coerce(name: str, value: object) -> object:
    if name in {"resource_dir", "local_script"}:
        return None if value is None else Path(cast(str, value))
    if name == "max_indicator_lines":
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"Invalid {name}: {value!r}")
        return value
    if name in {"debounce_delay", "inference_timeout"}:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"Invalid {name}: {value!r}")
        return float(value)
    if name == "gpu" or name.startswith("show_"):
        if not isinstance(value, bool):
            raise ConfigError(f"Invalid {name}: {value!r}")
        return value
    if name == "detail_level" and value == "verborse":
        # Older settings files carry this misspelling.
        return "verbose"
    if not isinstance(value, str):
        raise ConfigError(f"Invalid {name}: {value!r}")
    return value
