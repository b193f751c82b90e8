import csv
import logging

import pandas as pd

from contact_dedup.models import (
    ContactRecord,
    LabeledDate,
    MessagingAddress,
    PartialDate,
    SocialProfile,
    SourceKind,
)
from contact_dedup.normalization import (
    cell_text,
    dedupe_record_lists,
    find_header_line,
    read_csv_with_optional_header,
    source_exists,
)
from contact_dedup.reports import records_to_frame
from contact_dedup.sources import load_contacts_csv, load_linkedin_csv


def test_cell_text_and_source_exists(tmp_path, caplog):
    row = pd.Series({"A": "  value  ", "B": float("nan")})
    assert cell_text(row, "A") == "value"
    assert cell_text(row, "B") == ""
    assert cell_text({"B": None}, "B") == ""
    assert cell_text({}, "C") == ""

    present = tmp_path / "export.csv"
    present.write_text("a\n", encoding="utf-8")
    with caplog.at_level(logging.WARNING):
        assert source_exists(str(present), "Test") is True
        assert source_exists(None, "Test") is False
        assert caplog.text == ""
        assert source_exists(str(tmp_path / "nope.csv"), "Test") is False
    assert "Test export not found" in caplog.text


def test_find_header_line_needs_every_column():
    lines = ["Notes:", "First Name only,here", "URL,Last Name,First Name"]
    assert find_header_line(lines, ("first name", "last name")) == 2
    assert find_header_line(lines, ("first name", "email address")) is None


def test_read_csv_with_optional_header(tmp_path):
    content_lines = [
        "Notes:",
        '"When exporting your connection data, some emails may be missing."',
        "",
        "First Name,Last Name,URL,Email Address,Company,Position,Connected On",
        "John,Doe,https://linkedin.com/in/jdoe,,Acme,Engineer,01 Jan 2024",
        "",
    ]
    path = tmp_path / "lin.csv"
    path.write_text("\n".join(content_lines), encoding="utf-8")
    df = read_csv_with_optional_header(str(path), required_columns=("first name", "last name"))
    assert isinstance(df, pd.DataFrame)
    assert list(df["First Name"]) == ["John"]
    assert df.iloc[0]["Email Address"] == ""


def test_read_csv_without_matching_header_is_empty(tmp_path, caplog):
    path = tmp_path / "other.csv"
    path.write_text("Name,Phone\nAnn,555\n", encoding="utf-8")
    assert read_csv_with_optional_header(str(path), required_columns=("First Name",)).empty
    assert "No header naming First Name" in caplog.text
    empty = tmp_path / "empty.csv"
    empty.write_text("", encoding="utf-8")
    assert read_csv_with_optional_header(str(empty)).empty


def test_load_linkedin_csv_maps_connections(tmp_path):
    content = "\n".join(
        [
            "Notes:",
            '"When exporting your connection data, you may notice that some of the email addresses are missing."',
            "",
            "First Name,Last Name,URL,Email Address,Company,Position,Connected On",
            'Zoë,Ångström,https://www.linkedin.com/in/zoe,zoe@example.com,"Acme, Inc.",Staff Engineer,01 Jan 2024',
            "Sam,Lee,,,Globex,,02 Feb 2024",
            ",,https://www.linkedin.com/in/nobody,,Nowhere,,03 Mar 2024",
            "",
        ]
    )
    path = tmp_path / "Connections.csv"
    path.write_text(content, encoding="utf-8")

    records = load_linkedin_csv(str(path))

    assert len(records) == 2
    zoe, sam = records
    assert (zoe.first_name, zoe.last_name) == ("Zoë", "Ångström")
    assert zoe.company == "Acme, Inc."
    assert zoe.title == "Staff Engineer"
    assert zoe.emails == ["zoe@example.com"]
    assert zoe.urls == ["https://www.linkedin.com/in/zoe"]
    assert zoe.notes == "Position: Staff Engineer\nLinkedIn: https://www.linkedin.com/in/zoe"
    assert zoe.linkedin_id == "https://www.linkedin.com/in/zoe"
    assert zoe.source is SourceKind.LINKEDIN

    assert sam.emails == []
    assert sam.notes == ""
    assert sam.linkedin_id == "sam.lee"


def test_missing_sources_produce_no_records(tmp_path):
    assert load_linkedin_csv(None) == []
    assert load_linkedin_csv(str(tmp_path / "missing.csv")) == []
    assert load_contacts_csv(str(tmp_path / "missing.csv")) == []


def test_contacts_csv_survives_a_report_round_trip(tmp_path):
    record = ContactRecord(
        first_name="Dale",
        last_name="Cooper",
        emails=["dale@fbi.gov", "DALE@fbi.gov"],
        phones=["206-555-0100"],
        addresses=["Great Northern Hotel, Twin Peaks"],
        social_profiles=[SocialProfile(service="Twitter", username="coop")],
        messaging=[MessagingAddress(service="Skype", username="dcooper")],
        birthday=PartialDate(None, 4, 19),
        dates=[LabeledDate(label="arrival", date=PartialDate(1989, 2, 24))],
        notes="Damn fine coffee\nand cherry pie",
        photo=b"\x00\x01",
        source=SourceKind.DEVICE,
        device_id="ABC-123",
    )
    path = tmp_path / "contacts.csv"
    records_to_frame([record]).to_csv(path, index=False, encoding="utf-8", quoting=csv.QUOTE_ALL)

    loaded = load_contacts_csv(str(path))

    assert len(loaded) == 1
    restored = loaded[0]
    assert restored.record_id == record.record_id
    assert restored.emails == ["dale@fbi.gov"]
    assert restored.social_profiles == record.social_profiles
    assert restored.messaging == record.messaging
    assert restored.birthday == PartialDate(None, 4, 19)
    assert restored.dates == record.dates
    assert restored.notes == record.notes
    assert restored.photo == b"\x00\x01"
    assert restored.external_key == "device:ABC-123"
    assert restored.created_at == record.created_at


def test_dedupe_record_lists_uses_field_keys():
    record = ContactRecord(
        emails=["A@x.com", "a@X.com", "b@x.com"],
        phones=["(415) 555-2671", "415.555.2671"],
        addresses=["1 Main St", "1 main st"],
        urls=["https://Example.com", "https://example.com"],
    )
    cleaned = dedupe_record_lists(record)
    assert cleaned.emails == ["A@x.com", "b@x.com"]
    assert cleaned.phones == ["(415) 555-2671"]
    assert cleaned.addresses == ["1 Main St", "1 main st"]
    assert cleaned.urls == ["https://Example.com"]
    assert record.emails == ["A@x.com", "a@X.com", "b@x.com"]


def test_contacts_csv_accepts_plain_text_birthdays(tmp_path):
    path = tmp_path / "contacts.csv"
    path.write_text(
        "\n".join(
            [
                "first_name,last_name,birthday",
                "Ann,Lee,1980-05-17",
                "Sam,Lee,May 5",
                "Bo,Lee,",
            ]
        ),
        encoding="utf-8",
    )
    ann, sam, bo = load_contacts_csv(str(path))
    assert ann.birthday == PartialDate(1980, 5, 17)
    assert sam.birthday is None
    assert bo.birthday is None
