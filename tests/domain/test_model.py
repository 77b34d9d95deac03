"""Tests for invoice models and build_invoice validation."""

from __future__ import annotations

import pytest

from parcelctl.domain.errors import SchemaError, UnknownGroupReference, YankedInvoice
from parcelctl.domain.model import (
    DEFAULT_MEDIA_TYPE,
    BindleSpec,
    Group,
    Invoice,
    Label,
    build_invoice,
    ensure_not_yanked,
)
from parcelctl.domain.types import GLOBAL_GROUP, SatisfiedBy
from tests.conftest import digest, group, invoice_data, make_invoice, parcel


class TestLabel:
    def test_top_level_sha256_is_lifted(self) -> None:
        label = Label.model_validate({"name": "a", "sha256": digest("a")})
        assert label.hashes == {"sha256": digest("a")}
        assert label.sha256 == digest("a")
        assert label.media_type == DEFAULT_MEDIA_TYPE

    def test_multiple_algorithms(self) -> None:
        label = Label.model_validate(
            {"name": "a", "sha256": digest("a"), "hashes": {"sha512": "ab" * 64}}
        )
        assert label.digest("sha512") == "ab" * 64
        assert label.digest("blake3") is None

    def test_conflicting_digests_rejected(self) -> None:
        with pytest.raises(ValueError, match="conflicting sha256"):
            Label.model_validate(
                {"name": "a", "sha256": digest("a"), "hashes": {"sha256": digest("b")}}
            )

    def test_missing_hash_rejected(self) -> None:
        with pytest.raises(ValueError, match="at least one content hash"):
            Label.model_validate({"name": "a"})

    def test_non_hex_digest_rejected(self) -> None:
        with pytest.raises(ValueError, match="not hexadecimal"):
            Label.model_validate({"name": "a", "sha256": "not-hex"})

    def test_negative_size_rejected(self) -> None:
        with pytest.raises(ValueError):
            Label.model_validate({"name": "a", "sha256": digest("a"), "size": -1})

    def test_frozen(self) -> None:
        label = Label.model_validate({"name": "a", "sha256": digest("a")})
        with pytest.raises(Exception):
            label.name = "b"  # type: ignore[misc]


class TestGroup:
    def test_defaults(self) -> None:
        g = Group.model_validate({"name": "extras"})
        assert g.satisfied_by is SatisfiedBy.ALL_OF
        assert g.required is False
        assert g.is_global is False

    def test_alias_and_field_name(self) -> None:
        assert Group.model_validate({"name": "x", "satisfiedBy": "oneOf"}).satisfied_by == "oneOf"
        assert Group(name="x", satisfied_by=SatisfiedBy.ANY_OF).satisfied_by == "anyOf"

    def test_blank_name_rejected(self) -> None:
        with pytest.raises(ValueError, match="must not be empty"):
            Group.model_validate({"name": "  "})

    def test_global_group(self) -> None:
        g = Group.global_group()
        assert g.name == GLOBAL_GROUP
        assert g.is_global is True
        assert g.required is True
        assert g.satisfied_by is SatisfiedBy.ALL_OF


class TestParcelMembership:
    def test_no_conditions_is_global(self) -> None:
        inv = make_invoice(parcels=[parcel("base")])
        p = inv.parcels[0]
        assert p.is_global_group() is True
        assert p.member_groups() == (GLOBAL_GROUP,)
        assert p.required_groups() == ()

    def test_requires_only_is_still_global(self) -> None:
        inv = make_invoice(groups=[group("extra")], parcels=[parcel("base", requires=["extra"])])
        p = inv.parcels[0]
        assert p.is_global_group() is True
        assert p.required_groups() == ("extra",)

    def test_explicit_member_of(self) -> None:
        inv = make_invoice(groups=[group("a"), group("b")], parcels=[parcel("x", member_of=["a"])])
        p = inv.parcels[0]
        assert p.is_global_group() is False
        assert p.member_of("a") is True
        assert p.member_of("b") is False
        assert p.member_of(GLOBAL_GROUP) is False

    def test_empty_member_of_belongs_nowhere(self) -> None:
        inv = make_invoice(groups=[group("a")], parcels=[parcel("orphan", member_of=[])])
        p = inv.parcels[0]
        assert p.is_global_group() is False
        assert p.member_groups() == ()
        assert inv.group_members(GLOBAL_GROUP) == []
        assert inv.group_members("a") == []


class TestInvoice:
    def test_identity(self, scenario: Invoice) -> None:
        assert scenario.name == "example/1.0.0"
        assert scenario.canonical_name == BindleSpec(name="example", version="1.0.0").canonical_name
        assert len(scenario.canonical_name) == 64

    def test_lookups(self, scenario: Invoice) -> None:
        assert scenario.has_group("cli") is True
        assert scenario.has_group("ghost") is False
        assert scenario.get_group("cli") is not None
        assert scenario.get_group("ghost") is None
        assert scenario.get_group(GLOBAL_GROUP) == Group.global_group()
        assert scenario.get_parcel("third") is not None
        assert scenario.get_parcel("fourth") is None

    def test_group_members_in_declaration_order(self, scenario: Invoice) -> None:
        assert [p.name for p in scenario.group_members("utility")] == ["first", "third"]
        assert [p.name for p in scenario.group_members("cli")] == ["first", "second"]
        assert scenario.group_members("ghost") == []

    def test_empty_invoice_is_valid(self) -> None:
        inv = make_invoice()
        assert inv.groups == ()
        assert inv.parcels == ()

    def test_invalid_semver(self) -> None:
        with pytest.raises(SchemaError) as exc_info:
            build_invoice(invoice_data(version="1.0"))
        assert exc_info.value.problems[0].location == "bindle.version"

    def test_invalid_bindle_version(self) -> None:
        data = invoice_data()
        data["bindleVersion"] = "one"
        with pytest.raises(SchemaError) as exc_info:
            build_invoice(data)
        assert exc_info.value.problems[0].location == "bindleVersion"


class TestBuildInvoice:
    def test_missing_bindle(self) -> None:
        with pytest.raises(SchemaError) as exc_info:
            build_invoice({"bindleVersion": "1.0.0"})
        assert exc_info.value.problems[0].location == "bindle"

    def test_problem_located_by_parcel_name(self) -> None:
        bad = parcel("daemon")
        del bad["label"]["sha256"]
        with pytest.raises(SchemaError) as exc_info:
            build_invoice(invoice_data(parcels=[parcel("ok"), bad]))
        assert exc_info.value.problems[0].location.startswith("parcel[daemon].label")

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(SchemaError):
            build_invoice(invoice_data(groups=[{"name": "a", "optional": True}]))

    def test_first_problem_only_by_default(self) -> None:
        data = invoice_data(groups=[{"name": ""}, {"name": " "}])
        with pytest.raises(SchemaError) as exc_info:
            build_invoice(data)
        assert len(exc_info.value.problems) == 1

    def test_collect_all(self) -> None:
        data = invoice_data(groups=[{"name": ""}, {"name": " "}])
        with pytest.raises(SchemaError) as exc_info:
            build_invoice(data, collect_all=True)
        assert len(exc_info.value.problems) == 2
        assert "(and 1 more)" in str(exc_info.value)

    def test_duplicate_group_name(self) -> None:
        with pytest.raises(SchemaError, match="duplicate group name"):
            make_invoice(groups=[group("a"), group("a", "oneOf")])

    def test_duplicate_parcel_name(self) -> None:
        with pytest.raises(SchemaError, match="duplicate parcel name"):
            make_invoice(parcels=[parcel("x"), parcel("x")])

    def test_explicit_global_reference_rejected(self) -> None:
        with pytest.raises(SchemaError, match="global group cannot be referenced"):
            make_invoice(parcels=[parcel("x", member_of=[""])])

    def test_unknown_member_of(self) -> None:
        with pytest.raises(UnknownGroupReference) as exc_info:
            make_invoice(parcels=[parcel("x", member_of=["ghost"])])
        assert exc_info.value.group == "ghost"
        ref = exc_info.value.references[0]
        assert ref.source == "x"
        assert ref.field == "memberOf"

    def test_unknown_requires(self) -> None:
        with pytest.raises(UnknownGroupReference) as exc_info:
            make_invoice(groups=[group("a")], parcels=[parcel("x", requires=["a", "ghost"])])
        assert exc_info.value.references[0].field == "requires"

    def test_schema_problems_win_over_unknown_references(self) -> None:
        with pytest.raises(SchemaError):
            make_invoice(parcels=[parcel("x", member_of=["ghost"]), parcel("x")])

    def test_collect_all_unknown_references(self) -> None:
        data = invoice_data(
            parcels=[parcel("x", member_of=["ghost"]), parcel("y", requires=["phantom"])]
        )
        with pytest.raises(UnknownGroupReference) as exc_info:
            build_invoice(data, collect_all=True)
        assert [r.group for r in exc_info.value.references] == ["ghost", "phantom"]


class TestYanked:
    def test_not_yanked_passes(self, scenario: Invoice) -> None:
        ensure_not_yanked(scenario)

    def test_yanked_refused(self) -> None:
        inv = make_invoice(yanked=True)
        with pytest.raises(YankedInvoice, match="example/1.0.0"):
            ensure_not_yanked(inv)

    def test_yanked_allowed_explicitly(self) -> None:
        inv = make_invoice(yanked=True)
        ensure_not_yanked(inv, allow_yanked=True)
