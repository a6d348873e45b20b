import random

from contacts_identity.clustering import (
    DisjointSet,
    find_duplicate_groups,
    strongest_evidence,
)
from contacts_identity.config_loader import MatchingConfig
from contacts_identity.models import Contact, MatchConfidence, MatchEvidence, MatchField


def _group_sets(groups):
    return {frozenset(group.contact_ids) for group in groups}


def _corpus():
    return [
        Contact(id="1", name="Anna Schmidt", email="anna@example.com"),
        Contact(id="2", name="A. Schmidt", email="ANNA@example.com"),
        Contact(id="3", name="Ben Ortiz", phone="+1 415 555 0100"),
        Contact(id="4", name="Benjamin Ortiz", phone="+1 (415) 555-0100"),
        Contact(id="5", name="Benjamin Ortiz", phone="+14155550100"),
        Contact(id="6", name="Clara Dupont"),
        Contact(id="7", name="Clára Dupont"),
        Contact(id="8", name="Dmitri Ivanov"),
    ]


def test_disjoint_set_union_and_find():
    sets = DisjointSet(5)
    assert sets.union(0, 1)
    assert sets.union(3, 4)
    assert not sets.union(1, 0)
    assert sets.find(0) == sets.find(1)
    assert sets.find(2) not in (sets.find(0), sets.find(3))
    sets.union(1, 4)
    assert len({sets.find(i) for i in range(5)}) == 2


def test_groups_by_email_phone_and_name():
    groups = find_duplicate_groups(_corpus())
    assert _group_sets(groups) == {
        frozenset({"1", "2"}),
        frozenset({"3", "4", "5"}),
        frozenset({"6", "7"}),
    }
    by_id = {group.id: group for group in groups}
    assert by_id["1-2"].confidence is MatchConfidence.EXACT
    assert by_id["1-2"].match_field is MatchField.EMAIL
    assert by_id["3-4-5"].match_field is MatchField.PHONE
    assert by_id["6-7"].confidence is MatchConfidence.POSSIBLE
    assert by_id["6-7"].match_field is MatchField.NAME


def test_groups_sorted_by_size_descending():
    groups = find_duplicate_groups(_corpus())
    assert groups[0].id == "3-4-5"
    assert [group.size for group in groups] == sorted(
        (group.size for group in groups), reverse=True
    )


def test_singletons_are_not_reported():
    groups = find_duplicate_groups(_corpus())
    assert all("8" not in group.contact_ids for group in groups)
    assert find_duplicate_groups([]) == []
    assert find_duplicate_groups([Contact(id="x", name="Solo")]) == []


def test_clustering_is_order_independent():
    expected = _group_sets(find_duplicate_groups(_corpus()))
    rng = random.Random(7)
    for _ in range(10):
        shuffled = _corpus()
        rng.shuffle(shuffled)
        assert _group_sets(find_duplicate_groups(shuffled)) == expected


def test_transitive_closure_within_exact_and_within_fuzzy():
    exact_chain = [
        Contact(id="a", name="One", email="shared@example.com"),
        Contact(id="b", name="Two", email="shared@example.com", phone="030 1234567"),
        Contact(id="c", name="Three", phone="0301234567"),
    ]
    assert _group_sets(find_duplicate_groups(exact_chain)) == {frozenset({"a", "b", "c"})}

    fuzzy_chain = [
        Contact(id="a", name="Katharina Berg"),
        Contact(id="b", name="Katharine Berg"),
        Contact(id="c", name="Katherine Berg"),
        Contact(id="d", name="Unrelated Person"),
    ]
    groups = find_duplicate_groups(fuzzy_chain)
    assert _group_sets(groups) == {frozenset({"a", "b", "c"})}


def test_exact_matched_contacts_are_not_fuzzy_linked():
    contacts = [
        Contact(id="a", name="Marco Rossi", email="marco@example.com"),
        Contact(id="b", name="M. Rossi", email="marco@example.com"),
        Contact(id="c", name="Marco Rossi"),
    ]
    groups = find_duplicate_groups(contacts)
    assert _group_sets(groups) == {frozenset({"a", "b"})}


def test_exact_and_name_only_groups_keep_their_own_confidence():
    contacts = [
        Contact(id="a", name="Lena Park", email="lena@example.com"),
        Contact(id="b", name="Lena Park", phone="555 123 4567"),
        Contact(id="c", name="Lena Parks", email="lena@example.com"),
    ]
    # b shares nothing exact with a/c; only a and c are exact-matched.
    groups = find_duplicate_groups(contacts)
    assert _group_sets(groups) == {frozenset({"a", "c"})}

    mixed = [
        Contact(id="p", name="Omar Haddad", phone="+44 20 7946 0958"),
        Contact(id="q", name="Omar Hadad", phone="+442079460958"),
        Contact(id="r", name="Nadia Saleh"),
        Contact(id="s", name="Nadia Salah"),
    ]
    by_members = {frozenset(g.contact_ids): g for g in find_duplicate_groups(mixed)}
    assert by_members[frozenset({"p", "q"})].confidence is MatchConfidence.EXACT
    assert by_members[frozenset({"r", "s"})].confidence is MatchConfidence.POSSIBLE


def test_strongest_evidence_prefers_exact_regardless_of_order():
    email = MatchEvidence.exact(MatchField.EMAIL)
    phone = MatchEvidence.exact(MatchField.PHONE)
    possible = MatchEvidence.possible()
    assert strongest_evidence([possible, email, possible]) == email
    assert strongest_evidence([email, possible]) == email
    assert strongest_evidence([email, phone]) == phone
    assert strongest_evidence([possible]) == possible
    assert strongest_evidence([]) == possible


def test_short_phone_numbers_do_not_group():
    contacts = [
        Contact(id="a", name="Alpha Person", phone="112"),
        Contact(id="b", name="Zulu Human", phone="112"),
    ]
    assert find_duplicate_groups(contacts) == []


def test_group_id_is_sorted_member_ids_and_config_applies():
    contacts = [
        Contact(id="z9", name="X", phone="12345"),
        Contact(id="a1", name="Y", phone="12-345"),
    ]
    assert find_duplicate_groups(contacts) == []
    groups = find_duplicate_groups(contacts, MatchingConfig(min_phone_digits=5))
    assert [group.id for group in groups] == ["a1-z9"]


def test_accepts_mappings_and_ignores_repeated_ids():
    groups = find_duplicate_groups(
        [
            {"id": "1", "name": "Ada", "email": "ada@example.com"},
            {"id": "1", "name": "Ada", "email": "ada@example.com"},
            {"id": "2", "name": "Ada L", "email": "ADA@example.com"},
        ]
    )
    assert [group.contact_ids for group in groups] == [["1", "2"]]
