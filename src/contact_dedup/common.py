from __future__ import annotations

from typing import Any, Dict

from .config_loader import PipelineConfig, load_pipeline_config
from .confidence import Confidence, classify_confidence
from .detector import DetectionResult, DetectionStatus, DuplicateDetector, find_incomplete
from .merge import MergeEngine, MergeError, first_record_primary, merge_groups
from .models import (
    ContactRecord,
    DuplicateGroup,
    MatchType,
    MergeConflict,
    MergeResult,
    SourceKind,
)
from .normalization import (
    cell_text,
    dedupe_record_lists,
    normalize_record,
    read_csv_with_optional_header,
    source_exists,
)
from .similarity import SimilarityEngine

__all__ = [
    "Confidence",
    "ContactRecord",
    "DetectionResult",
    "DetectionStatus",
    "DuplicateDetector",
    "DuplicateGroup",
    "MatchType",
    "MergeConflict",
    "MergeEngine",
    "MergeError",
    "MergeResult",
    "PipelineConfig",
    "SimilarityEngine",
    "SourceKind",
    "cell_text",
    "classify_confidence",
    "dedupe_record_lists",
    "ensure_contact_record",
    "find_incomplete",
    "first_record_primary",
    "load_config",
    "load_pipeline_config",
    "merge_groups",
    "normalize_record",
    "read_csv_with_optional_header",
    "source_exists",
    "to_contact_record",
]


def load_config(args: Any) -> PipelineConfig:
    return load_pipeline_config(args)


def to_contact_record(payload: Dict[str, Any]) -> ContactRecord:
    return ContactRecord.from_mapping(payload)


def ensure_contact_record(obj: Any) -> ContactRecord:
    if isinstance(obj, ContactRecord):
        return obj
    if isinstance(obj, dict):
        return ContactRecord.from_mapping(obj)
    raise TypeError(f"Unsupported contact payload type: {type(obj)!r}")
