from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml  # type: ignore[import-untyped]

from .models import MatchType
from .similarity import resolve_weights


@dataclass
class OutputsConfig:
    dir: Path


@dataclass
class DedupeConfig:
    name_similarity_threshold: float = 0.90
    weights_profile: str = "default"
    weights: Dict[str, float] = field(default_factory=dict)
    progress_interval: int = 100

    def __post_init__(self) -> None:
        threshold = float(self.name_similarity_threshold)
        if not 0.0 < threshold < 1.0:
            raise ValueError(
                f"name_similarity_threshold must be between 0 and 1 (exclusive), got {threshold}"
            )
        self.name_similarity_threshold = threshold
        resolve_weights(self.weights_profile, self.weights)
        self.progress_interval = int(self.progress_interval)
        if self.progress_interval < 1:
            raise ValueError(f"progress_interval must be positive, got {self.progress_interval}")


@dataclass
class MergeConfig:
    enabled: bool = False
    match_types: List[MatchType] = field(default_factory=lambda: list(MatchType))


@dataclass
class LoggingConfig:
    level: str = "WARNING"


@dataclass
class PipelineConfig:
    inputs: Dict[str, Optional[str]]
    outputs: OutputsConfig
    dedupe: DedupeConfig
    merge: MergeConfig
    logging: LoggingConfig


def _load_yaml(path: Optional[str]) -> Dict[str, Any]:
    if not path:
        return {}
    with open(path, "r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def _parse_match_types(values: Optional[List[str]]) -> List[MatchType]:
    if not values:
        return list(MatchType)
    parsed: List[MatchType] = []
    for value in values:
        try:
            match_type = MatchType(str(value).strip().lower())
        except ValueError:
            expected = ", ".join(item.value for item in MatchType)
            raise ValueError(f"unknown match type {value!r}; expected one of {expected}") from None
        if match_type not in parsed:
            parsed.append(match_type)
    return parsed


def load_pipeline_config(args: argparse.Namespace) -> PipelineConfig:
    config_data = _load_yaml(getattr(args, "config", None))
    inputs = config_data.get("inputs", {}) or {}
    outputs_cfg = config_data.get("outputs", {}) or {}
    dedupe_cfg = config_data.get("dedupe", {}) or {}
    merge_cfg = config_data.get("merge", {}) or {}
    logging_cfg = config_data.get("logging", {}) or {}

    outputs_dir = Path(getattr(args, "out_dir", None) or outputs_cfg.get("dir") or os.getcwd())
    outputs = OutputsConfig(dir=outputs_dir)

    dedupe = DedupeConfig(
        name_similarity_threshold=getattr(args, "name_similarity_threshold", None)
        or dedupe_cfg.get("name_similarity_threshold", 0.90),
        weights_profile=getattr(args, "weights_profile", None)
        or dedupe_cfg.get("weights_profile", "default"),
        weights=dict(dedupe_cfg.get("weights") or {}),
        progress_interval=dedupe_cfg.get("progress_interval", 100),
    )

    merge = MergeConfig(
        enabled=bool(getattr(args, "merge", None) or merge_cfg.get("enabled", False)),
        match_types=_parse_match_types(
            getattr(args, "merge_match_type", None) or merge_cfg.get("match_types")
        ),
    )

    arg_level = getattr(args, "log_level", None)
    effective_level = (arg_level or logging_cfg.get("level") or "WARNING").upper()
    logging_config = LoggingConfig(level=effective_level)

    resolved_inputs = {
        "contacts_csv": getattr(args, "contacts_csv", None) or inputs.get("contacts_csv"),
        "linkedin_csv": getattr(args, "linkedin_csv", None) or inputs.get("linkedin_csv"),
        "dismissed_path": getattr(args, "dismissed", None) or inputs.get("dismissed_path"),
    }

    return PipelineConfig(
        inputs=resolved_inputs,
        outputs=outputs,
        dedupe=dedupe,
        merge=merge,
        logging=logging_config,
    )


__all__ = [
    "DedupeConfig",
    "LoggingConfig",
    "MergeConfig",
    "OutputsConfig",
    "PipelineConfig",
    "load_pipeline_config",
]
