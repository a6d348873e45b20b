from types import SimpleNamespace

from contacts_identity.config_loader import BUILTIN_PROTECTED_FIELDS, load_identity_config


def test_defaults_without_file():
    config = load_identity_config()
    assert config.matching.min_phone_digits == 7
    assert config.matching.fuzzy_min_length == 4
    assert config.matching.max_edit_distance == 2
    assert config.snapshot.supported_version == 1
    assert config.snapshot.self_contact_name == "Me"


def test_yaml_and_args_precedence(tmp_path):
    path = tmp_path / "identity.yaml"
    path.write_text(
        "\n".join(
            [
                "matching:",
                "  min_phone_digits: 8",
                "  max_edit_distance: 1",
                "merge:",
                "  protected_fields: [rating]",
                "  conflict_fields: [email, city]",
                "snapshot:",
                "  self_contact_name: Owner",
                "",
            ]
        ),
        encoding="utf-8",
    )
    args = SimpleNamespace(config=str(path), max_edit_distance=3)
    config = load_identity_config(args)

    assert config.matching.min_phone_digits == 8
    assert config.matching.max_edit_distance == 3
    assert config.merge.conflict_fields == ("email", "city")
    assert "rating" in config.merge.protected_fields
    assert set(BUILTIN_PROTECTED_FIELDS) <= set(config.merge.protected_fields)
    assert config.snapshot.self_contact_name == "Owner"


def test_config_cannot_unprotect_builtin_fields(tmp_path):
    path = tmp_path / "identity.yaml"
    path.write_text("merge:\n  protected_fields: []\n", encoding="utf-8")
    config = load_identity_config(path=str(path))
    assert config.merge.protected_fields == BUILTIN_PROTECTED_FIELDS
