from __future__ import annotations

import argparse
import logging
from typing import Dict, List, Optional, Tuple

import pandas as pd

from .common import (
    ContactRecord,
    DuplicateDetector,
    MatchType,
    MergeEngine,
    MergeResult,
    find_incomplete,
    load_config,
)
from .config_loader import PipelineConfig
from .dismissal import DismissalRegistry
from .logging_utils import configure_logging
from .reports import conflicts_to_frame, groups_to_frame, records_to_frame, write_csv
from .similarity import WEIGHT_PROFILES
from .sources import load_contacts_csv, load_linkedin_csv

# use module logger instead of configuring logging at import time
logger = logging.getLogger(__name__)

GROUPS_FILENAME = "duplicate_groups.csv"
MERGED_FILENAME = "merged_contacts.csv"
CONFLICTS_FILENAME = "merge_conflicts.csv"


def _load_sources(config: PipelineConfig) -> List[ContactRecord]:
    records: List[ContactRecord] = []
    records.extend(load_contacts_csv(config.inputs.get("contacts_csv")))
    records.extend(load_linkedin_csv(config.inputs.get("linkedin_csv")))
    return records


def _apply_merges(records: List[ContactRecord], results: List[MergeResult]) -> List[ContactRecord]:
    """Replace each merged primary in place and drop the records folded into it."""
    replacements: Dict[str, ContactRecord] = {}
    consumed = set()
    for result in results:
        replacements[result.record.record_id] = result.record
        consumed.update(result.merged_ids)
    final: List[ContactRecord] = []
    for record in records:
        if record.record_id in consumed:
            continue
        final.append(replacements.get(record.record_id, record))
    return final


def build(
    args: argparse.Namespace, config: Optional[PipelineConfig] = None
) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    config = config or load_config(args)

    records = _load_sources(config)
    detector = DuplicateDetector(config.dedupe)
    detection = detector.detect(records)

    dismissals = DismissalRegistry.load(config.inputs.get("dismissed_path"))
    groups = dismissals.filter(detection.groups)
    if len(groups) != len(detection.groups):
        logger.info("Ignoring %d dismissed group(s)", len(detection.groups) - len(groups))

    incomplete = find_incomplete(records)
    if incomplete:
        logger.info("%d contact(s) have a name but no email or phone", len(incomplete))

    groups_df = groups_to_frame(groups)

    results: List[MergeResult] = []
    merged_records = records
    if config.merge.enabled:
        results = MergeEngine().merge_groups(groups, match_type=config.merge.match_types)
        merged_records = _apply_merges(records, results)
        logger.info(
            "Merged %d group(s): %d record(s) reduced to %d",
            len(results),
            len(records),
            len(merged_records),
        )

    merged_df = records_to_frame(merged_records)
    conflicts_df = conflicts_to_frame(results)
    return groups_df, merged_df, conflicts_df


def main() -> int:

    parser = argparse.ArgumentParser(description="Find and merge duplicate contacts.")
    parser.add_argument("--config", type=str, default=None, help="Path to YAML config.")
    parser.add_argument("--contacts-csv", type=str, default=None)
    parser.add_argument("--linkedin-csv", type=str, default=None)
    parser.add_argument("--out-dir", type=str, default=None)
    parser.add_argument("--name-similarity-threshold", type=float, default=None)
    parser.add_argument("--weights-profile", choices=sorted(WEIGHT_PROFILES), default=None)
    parser.add_argument(
        "--merge",
        action="store_true",
        default=None,
        help="Merge every detected group into its first record.",
    )
    parser.add_argument(
        "--merge-match-type",
        nargs="*",
        choices=[match_type.value for match_type in MatchType],
        default=None,
        help="Only merge groups of these match types (default: all).",
    )
    parser.add_argument(
        "--dismissed", type=str, default=None, help="YAML file of dismissed group pairs."
    )
    parser.add_argument("--log-level", type=str, default=None, help="Override logging level")
    args = parser.parse_args()

    config = load_config(args)
    configure_logging(config, level_override=args.log_level)
    groups_df, merged_df, conflicts_df = build(args, config=config)

    out_dir = config.outputs.dir
    write_csv(groups_df, out_dir / GROUPS_FILENAME)
    write_csv(merged_df, out_dir / MERGED_FILENAME)
    write_csv(conflicts_df, out_dir / CONFLICTS_FILENAME)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
