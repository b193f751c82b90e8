from datetime import datetime, timezone

from contact_dedup.models import ContactRecord, SourceKind
from contact_dedup.reconcile import reconcile_import

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def test_matching_incoming_records_merge_into_existing():
    existing = [
        ContactRecord(
            record_id="dev-1",
            first_name="Dale",
            last_name="Cooper",
            emails=["dale@fbi.gov"],
            source=SourceKind.DEVICE,
            device_id="D1",
        ),
        ContactRecord(record_id="dev-2", first_name="Harry", last_name="Truman"),
    ]
    incoming = [
        ContactRecord(
            first_name="Dale",
            last_name="Cooper",
            emails=["DALE@fbi.gov"],
            company="FBI",
            source=SourceKind.LINKEDIN,
            linkedin_id="https://linkedin.com/in/dcooper",
        ),
        ContactRecord(first_name="Lucy", last_name="Moran", emails=["lucy@twinpeaks.gov"]),
    ]

    result = reconcile_import(incoming, existing, now=NOW)

    assert (result.imported, result.merged, result.skipped) == (1, 1, 0)
    assert [record.record_id for record in result.records][:2] == ["dev-1", "dev-2"]
    dale = result.records[0]
    assert dale.company == "FBI"
    assert dale.device_id == "D1"
    assert dale.linkedin_id == "https://linkedin.com/in/dcooper"
    assert dale.updated_at == NOW
    assert result.records[2].first_name == "Lucy"
    assert existing[0].company == ""


def test_require_email_skips_incoming_without_email():
    incoming = [{"first_name": "Sam", "last_name": "Lee"}, {"first_name": "Ann", "emails": "ann@x.com"}]
    result = reconcile_import(incoming, [], require_email=True)
    assert (result.imported, result.merged, result.skipped) == (1, 0, 1)
    assert result.records[0].emails == ["ann@x.com"]


def test_records_imported_earlier_in_the_batch_are_candidates():
    incoming = [
        ContactRecord(first_name="John", last_name="Smith", phones=["415-555-2671"]),
        ContactRecord(first_name="Jonh", last_name="Smith", phones=["(415) 555-2671"]),
    ]
    result = reconcile_import(incoming, [], now=NOW)
    assert (result.imported, result.merged) == (1, 1)
    assert len(result.records) == 1
    assert [(c.field, c.value) for c in result.conflicts] == [("first_name", "Jonh")]


def test_free_text_birthday_is_treated_as_missing():
    incoming = [{"first_name": "Ann", "last_name": "Lee", "birthday": "May 5"}]
    existing = [ContactRecord(record_id="dev-1", first_name="Ann", last_name="Lee")]
    result = reconcile_import(incoming, existing, now=NOW)
    assert (result.imported, result.merged, result.skipped) == (0, 1, 0)
    assert result.records[0].birthday is None
    assert result.conflicts == []
