from contacts_identity.import_matching import (
    ImportMatcher,
    build_lookup_maps,
    dedupe_batch,
    find_import_duplicates,
)
from contacts_identity.models import (
    Contact,
    ImportAction,
    MatchConfidence,
    MatchField,
    ParsedContact,
)


def _existing():
    return [
        Contact(id="e1", name="Anna Schmidt", email="anna@example.com"),
        Contact(id="e2", name="Ben Ortiz", phone="+1 415 555 0100"),
        Contact(id="e3", name="Clara Dupont"),
        Contact(id="e4", name="Clara Dupont-Martin"),
    ]


def test_batch_dedup_drops_repeated_email():
    batch = [
        ParsedContact(name="Dana One", email="dana@example.com"),
        ParsedContact(name="Dana Two", email="DANA@example.com "),
        ParsedContact(name="Eli Three", email="eli@example.com"),
    ]
    result = dedupe_batch(batch)
    assert [record.name for record in result.kept] == ["Dana One", "Eli Three"]
    assert result.dropped_count == 1


def test_batch_dedup_uses_phone_then_name():
    batch = [
        {"name": "Fay", "phone": "030 1234567"},
        {"name": "Fay Again", "phone": "030-1234567"},
        {"name": "Gil Moss"},
        {"name": "gil  moss"},
        {"name": "Gil Moss", "email": "gil@example.com"},
    ]
    result = dedupe_batch(batch)
    assert [record.name for record in result.kept] == ["Fay", "Gil Moss", "Gil Moss"]
    assert result.dropped_count == 2


def test_lookup_maps_skip_short_phones():
    by_email, by_phone = build_lookup_maps(
        [
            Contact(id="a", name="A", email="A@x.com", phone="123"),
            Contact(id="b", name="B", phone="(415) 555-0100"),
        ]
    )
    assert set(by_email) == {"a@x.com"}
    assert set(by_phone) == {"4155550100"}


def test_classification_order_email_phone_name():
    matcher = ImportMatcher(_existing())

    by_email = matcher.classify(ParsedContact(name="Someone Else", email="Anna@Example.com"))
    assert by_email.action is ImportAction.SKIP
    assert by_email.match.existing_contact.id == "e1"
    assert by_email.match.evidence.match_field is MatchField.EMAIL

    by_phone = matcher.classify(ParsedContact(name="Nobody", phone="+14155550100"))
    assert by_phone.match.existing_contact.id == "e2"
    assert by_phone.match.evidence.confidence is MatchConfidence.EXACT

    fresh = matcher.classify(ParsedContact(name="Totally New", email="new@example.com"))
    assert fresh.action is ImportAction.CREATE
    assert fresh.match is None


def test_name_scan_takes_first_hit_not_closest():
    matcher = ImportMatcher(_existing())
    entry = matcher.classify(ParsedContact(name="Clara Dupont-Martin"))
    # e3 is a substring hit and comes first, even though e4 is an exact name.
    assert entry.match.existing_contact.id == "e3"
    assert entry.match.evidence.confidence is MatchConfidence.POSSIBLE


def test_find_import_duplicates_dedupes_before_matching():
    parsed = [
        ParsedContact(name="Anna S", email="anna@example.com"),
        ParsedContact(name="Anna Copy", email="anna@example.com"),
        ParsedContact(name="Hugo Brandt", email="hugo@example.com"),
    ]
    plan = find_import_duplicates(parsed, _existing())
    assert plan.dropped_in_batch == 1
    assert len(plan.entries) == 2
    assert [record.name for record in plan.to_create] == ["Hugo Brandt"]
    assert [entry.parsed.name for entry in plan.to_skip] == ["Anna S"]


def test_empty_corpus_creates_everything():
    plan = find_import_duplicates([{"name": "Ivy"}, {"name": "Jack Ng"}], [])
    assert [entry.action for entry in plan.entries] == [ImportAction.CREATE] * 2
