import sys
from types import SimpleNamespace

import pandas as pd
import pytest

from contact_dedup import find_duplicates as fd
from contact_dedup.dismissal import DismissalRegistry
from contact_dedup.models import ContactRecord, DuplicateGroup, MatchType
from contact_dedup.reports import conflicts_to_frame, groups_to_frame


def _args(**overrides):
    base = dict(
        config=None,
        contacts_csv=None,
        linkedin_csv=None,
        out_dir=None,
        name_similarity_threshold=None,
        weights_profile=None,
        merge=None,
        merge_match_type=None,
        dismissed=None,
        log_level=None,
    )
    base.update(overrides)
    return SimpleNamespace(**base)


def _records():
    return [
        ContactRecord(
            record_id="a",
            first_name="John",
            last_name="Smith",
            emails=["john@x.com"],
            device_id="D1",
        ),
        ContactRecord(
            record_id="b",
            first_name="Jonh",
            last_name="Smith",
            phones=["415-555-2671"],
            google_id="G1",
        ),
        ContactRecord(record_id="c", first_name="Ann", last_name="Lee", emails=["ann@x.com"]),
    ]


def test_build_reports_groups_without_merging(monkeypatch):
    monkeypatch.setattr(fd, "_load_sources", lambda config: _records())

    groups_df, merged_df, conflicts_df = fd.build(_args())

    assert list(groups_df["record_id"]) == ["a", "b"]
    assert set(groups_df["match_type"]) == {"similar"}
    assert list(groups_df["is_primary"]) == [True, False]
    assert list(merged_df["record_id"]) == ["a", "b", "c"]
    assert conflicts_df.empty


def test_build_merges_when_enabled(monkeypatch):
    monkeypatch.setattr(fd, "_load_sources", lambda config: _records())

    groups_df, merged_df, conflicts_df = fd.build(_args(merge=True))

    assert list(merged_df["record_id"]) == ["a", "c"]
    merged = merged_df.iloc[0]
    assert merged["phones"] == "415-555-2671"
    assert merged["google_id"] == "G1"
    assert merged["nickname"] == "Jonh Smith"
    assert list(conflicts_df["field"]) == ["first_name"]
    assert list(conflicts_df["merged_record_id"]) == ["a"]


def test_build_respects_merge_match_type(monkeypatch):
    monkeypatch.setattr(fd, "_load_sources", lambda config: _records())

    _, merged_df, _ = fd.build(_args(merge=True, merge_match_type=["same_email"]))

    assert list(merged_df["record_id"]) == ["a", "b", "c"]


def test_build_skips_dismissed_groups(monkeypatch, tmp_path):
    records = _records()
    monkeypatch.setattr(fd, "_load_sources", lambda config: records)
    registry = DismissalRegistry()
    registry.dismiss(
        DuplicateGroup(records=records[:2], match_type=MatchType.SIMILAR, name_similarity=0.97)
    )
    path = tmp_path / "dismissed.yaml"
    registry.save(str(path))

    groups_df, _, _ = fd.build(_args(dismissed=str(path)))

    assert groups_df.empty
    assert list(groups_df.columns) == list(groups_to_frame([]).columns)


def test_build_threshold_override(monkeypatch):
    records = [
        ContactRecord(first_name="Mark", last_name="Harrison"),
        ContactRecord(first_name="Margo", last_name="Harrison"),
    ]
    monkeypatch.setattr(fd, "_load_sources", lambda config: records)

    strict_df, _, _ = fd.build(_args())
    loose_df, _, _ = fd.build(_args(name_similarity_threshold=0.8))

    assert strict_df.empty
    assert len(loose_df) == 2


def test_main_writes_reports(monkeypatch, tmp_path):
    contacts = tmp_path / "Connections.csv"
    contacts.write_text(
        "\n".join(
            [
                "Notes:",
                '"Some emails may be missing."',
                "",
                "First Name,Last Name,URL,Email Address,Company,Position,Connected On",
                "Dale,Cooper,https://www.linkedin.com/in/dcooper,dale@fbi.gov,FBI,Agent,01 Jan 2024",
                "Dale,Cooper,,DALE@fbi.gov,,,02 Jan 2024",
                "",
            ]
        ),
        encoding="utf-8",
    )
    monkeypatch.setattr(
        sys,
        "argv",
        [
            "contact-dedup",
            "--linkedin-csv",
            str(contacts),
            "--out-dir",
            str(tmp_path),
            "--merge",
        ],
    )

    assert fd.main() == 0

    groups = pd.read_csv(tmp_path / fd.GROUPS_FILENAME, dtype=str, keep_default_na=False)
    merged = pd.read_csv(tmp_path / fd.MERGED_FILENAME, dtype=str, keep_default_na=False)
    conflicts = pd.read_csv(tmp_path / fd.CONFLICTS_FILENAME, dtype=str, keep_default_na=False)
    assert list(groups["match_type"]) == ["same_email", "same_email"]
    assert len(merged) == 1
    assert merged.loc[0, "company"] == "FBI"
    assert list(conflicts.columns) == list(conflicts_to_frame([]).columns)


if __name__ == "__main__":
    pytest.main(["-q"])
