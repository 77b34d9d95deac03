"""Invoice models: labels, conditions, groups, parcels, and the invoice.

Model attributes map 1:1 to the invoice's TOML keys through camelCase
aliases (``bindleVersion``, ``mediaType``, ``memberOf``, ``satisfiedBy``)
and the singular collection names ``group`` / ``parcel``. Every model is
frozen: an invoice is built once and never mutated.

Structural validation happens in two places:

- Field-level rules (non-empty names, hex digests, SemVer versions) live
  on the models and surface as pydantic ``ValidationError``.
- Cross-entry invariants (unique group and parcel names, declared group
  references) live in :func:`validate_invoice`.

:func:`build_invoice` runs both and converts every failure into the
domain error taxonomy, so callers never see a pydantic exception.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Mapping, Sequence
from enum import StrEnum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from parcelctl.domain.errors import (
    GroupReference,
    SchemaError,
    SchemaProblem,
    UnknownGroupReference,
    YankedInvoice,
)
from parcelctl.domain.types import GLOBAL_GROUP, SatisfiedBy

# ---------------------------------------------------------------------------
# Patterns and constants
# ---------------------------------------------------------------------------

# SemVer 2.0.0 grammar (https://semver.org).
SEMVER_PATTERN = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)

HEX_PATTERN = re.compile(r"^[0-9a-fA-F]+$")

HASH_ALGORITHMS: tuple[str, ...] = ("sha256", "sha384", "sha512", "blake2b", "blake3")

DEFAULT_MEDIA_TYPE = "application/octet-stream"

_MODEL_CONFIG = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


# ---------------------------------------------------------------------------
# Label
# ---------------------------------------------------------------------------


class Label(BaseModel):
    """Content identity of a parcel.

    A label may carry several digests at once (one per algorithm). Known
    algorithm keys written at the top level (``sha256 = "..."``) are lifted
    into :attr:`hashes`.
    """

    model_config = _MODEL_CONFIG

    name: str = Field(min_length=1)
    media_type: str = Field(default=DEFAULT_MEDIA_TYPE, alias="mediaType", min_length=1)
    size: int | None = Field(default=None, ge=0)
    hashes: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] | None = None
    feature: dict[str, dict[str, str]] | None = None
    origin: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _lift_hashes(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        lifted = {key: data[key] for key in HASH_ALGORITHMS if key in data}
        if not lifted:
            return data
        rest = {key: value for key, value in data.items() if key not in lifted}
        hashes = dict(rest.get("hashes") or {})
        for algorithm, digest in lifted.items():
            if algorithm in hashes and hashes[algorithm] != digest:
                msg = f"conflicting {algorithm} digests"
                raise ValueError(msg)
            hashes[algorithm] = digest
        rest["hashes"] = hashes
        return rest

    @model_validator(mode="after")
    def _check_hashes(self) -> Self:
        if not self.hashes:
            msg = "label must carry at least one content hash"
            raise ValueError(msg)
        for algorithm, digest in self.hashes.items():
            if algorithm not in HASH_ALGORITHMS:
                msg = f"unsupported hash algorithm {algorithm!r}"
                raise ValueError(msg)
            if not HEX_PATTERN.match(digest):
                msg = f"{algorithm} digest is not hexadecimal"
                raise ValueError(msg)
        return self

    @property
    def sha256(self) -> str | None:
        return self.hashes.get("sha256")

    def digest(self, algorithm: str) -> str | None:
        """Return the digest for *algorithm*, or None if the label lacks it."""
        return self.hashes.get(algorithm)


# ---------------------------------------------------------------------------
# Conditions, groups, parcels
# ---------------------------------------------------------------------------


class Condition(BaseModel):
    """Membership and requirement conditions of a parcel within an invoice.

    ``member_of = None`` means "member of the global group only";
    ``member_of = ()`` means "member of no group at all".
    """

    model_config = _MODEL_CONFIG

    member_of: tuple[str, ...] | None = Field(default=None, alias="memberOf")
    requires: tuple[str, ...] | None = None

    def is_global(self) -> bool:
        return self.member_of is None


class Group(BaseModel):
    """A named collection of parcels with a satisfaction policy."""

    model_config = _MODEL_CONFIG

    name: str
    satisfied_by: SatisfiedBy = Field(default=SatisfiedBy.ALL_OF, alias="satisfiedBy")
    required: bool = False

    @field_validator("name")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            msg = "group name must not be empty"
            raise ValueError(msg)
        return value

    @classmethod
    def global_group(cls) -> Group:
        """The implicit, unnamed, always-required global group."""
        return cls.model_construct(
            name=GLOBAL_GROUP,
            satisfied_by=SatisfiedBy.ALL_OF,
            required=True,
        )

    @property
    def is_global(self) -> bool:
        return self.name == GLOBAL_GROUP


class Parcel(BaseModel):
    """One invoice entry: a label plus its conditions."""

    model_config = _MODEL_CONFIG

    label: Label
    conditions: Condition | None = None

    @property
    def name(self) -> str:
        return self.label.name

    def is_global_group(self) -> bool:
        """True if this parcel belongs to the implicit global group.

        Only parcels whose conditions omit ``memberOf`` are global; an
        explicit empty ``memberOf`` removes the parcel from every group.
        """
        return self.conditions is None or self.conditions.member_of is None

    def member_of(self, group: str) -> bool:
        if group == GLOBAL_GROUP:
            return self.is_global_group()
        if self.conditions is None or self.conditions.member_of is None:
            return False
        return group in self.conditions.member_of

    def member_groups(self) -> tuple[str, ...]:
        """Every group this parcel belongs to, global included."""
        if self.is_global_group():
            return (GLOBAL_GROUP,)
        assert self.conditions is not None and self.conditions.member_of is not None
        return self.conditions.member_of

    def required_groups(self) -> tuple[str, ...]:
        if self.conditions is None:
            return ()
        return self.conditions.requires or ()


# ---------------------------------------------------------------------------
# Bindle metadata and signatures
# ---------------------------------------------------------------------------


class SignatureRole(StrEnum):
    """Role of a signer in a signature block."""

    CREATOR = "creator"
    PROXY = "proxy"
    HOST = "host"
    APPROVER = "approver"


class Signature(BaseModel):
    """A signature block. Carried opaquely; never verified here."""

    model_config = _MODEL_CONFIG

    by: str
    signature: str
    key: str
    role: SignatureRole
    at: int | None = None


class BindleSpec(BaseModel):
    """Bindle metadata: name, version, authors, description."""

    model_config = _MODEL_CONFIG

    name: str = Field(min_length=1)
    version: str
    description: str | None = None
    authors: tuple[str, ...] | None = None

    @field_validator("version")
    @classmethod
    def _semver(cls, value: str) -> str:
        if not SEMVER_PATTERN.match(value):
            msg = f"{value!r} is not a semantic version"
            raise ValueError(msg)
        return value

    @property
    def id(self) -> str:
        """Slash-delimited ``name/version`` identifier."""
        return f"{self.name}/{self.version}"

    @property
    def canonical_name(self) -> str:
        """SHA-256 hex of ``name/version``; opaque and filesystem-safe."""
        return hashlib.sha256(self.id.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Invoice
# ---------------------------------------------------------------------------


class Invoice(BaseModel):
    """A complete invoice: metadata, groups, and parcels.

    ``yanked`` is only read here; the registry owns its transitions.
    """

    model_config = _MODEL_CONFIG

    bindle_version: str = Field(alias="bindleVersion")
    yanked: bool = False
    yanked_signature: tuple[Signature, ...] | None = Field(default=None, alias="yankedSignature")
    bindle: BindleSpec
    annotations: dict[str, str] | None = None
    groups: tuple[Group, ...] = Field(default=(), alias="group")
    parcels: tuple[Parcel, ...] = Field(default=(), alias="parcel")
    signature: tuple[Signature, ...] | None = None

    @field_validator("bindle_version")
    @classmethod
    def _semver(cls, value: str) -> str:
        if not SEMVER_PATTERN.match(value):
            msg = f"{value!r} is not a valid manifest version"
            raise ValueError(msg)
        return value

    @property
    def name(self) -> str:
        return self.bindle.id

    @property
    def canonical_name(self) -> str:
        return self.bindle.canonical_name

    def has_group(self, name: str) -> bool:
        """Check whether a group by this name is declared."""
        return any(g.name == name for g in self.groups)

    def get_group(self, name: str) -> Group | None:
        if name == GLOBAL_GROUP:
            return Group.global_group()
        for group in self.groups:
            if group.name == name:
                return group
        return None

    def get_parcel(self, name: str) -> Parcel | None:
        for parcel in self.parcels:
            if parcel.name == name:
                return parcel
        return None

    def group_members(self, name: str) -> list[Parcel]:
        """All parcels in the named group, in declaration order.

        The global group's members are derived. An undeclared group has
        no members.
        """
        if name != GLOBAL_GROUP and not self.has_group(name):
            return []
        return [p for p in self.parcels if p.member_of(name)]


# ---------------------------------------------------------------------------
# Building and validating
# ---------------------------------------------------------------------------


def _identify(entry: Any) -> str | None:
    """Best human identifier for a raw group or parcel entry."""
    if not isinstance(entry, Mapping):
        return None
    name = entry.get("name")
    if isinstance(name, str) and name:
        return name
    label = entry.get("label")
    if isinstance(label, Mapping):
        label_name = label.get("name")
        if isinstance(label_name, str) and label_name:
            return label_name
    return None


def _locate(raw: Any, loc: Sequence[int | str]) -> str:
    """Render a pydantic error location using group / parcel names."""
    parts: list[str] = []
    node: Any = raw
    for key in loc:
        child: Any = None
        if isinstance(node, Mapping):
            child = node.get(key)
        elif isinstance(node, Sequence) and not isinstance(node, str) and isinstance(key, int):
            child = node[key] if 0 <= key < len(node) else None
        if isinstance(key, int):
            ident = _identify(child) or str(key)
            if parts:
                parts[-1] = f"{parts[-1]}[{ident}]"
            else:
                parts.append(f"[{ident}]")
        else:
            parts.append(str(key))
        node = child
    return ".".join(parts) or "invoice"


def validate_invoice(invoice: Invoice, *, collect_all: bool = False) -> None:
    """Check the cross-entry invariants of a field-valid invoice.

    Raises:
        SchemaError: Duplicate group or parcel names, or an explicit
            reference to the unnamed global group.
        UnknownGroupReference: A ``memberOf`` / ``requires`` name that is
            not declared.
    """
    problems: list[SchemaProblem] = []
    unknown: list[GroupReference] = []

    declared: set[str] = set()
    for group in invoice.groups:
        if group.name in declared:
            problems.append(
                SchemaProblem(location=f"group[{group.name}]", message="duplicate group name")
            )
        declared.add(group.name)

    seen: set[str] = set()
    for parcel in invoice.parcels:
        location = f"parcel[{parcel.name}]"
        if parcel.name in seen:
            problems.append(SchemaProblem(location=location, message="duplicate parcel name"))
        seen.add(parcel.name)
        if parcel.conditions is None:
            continue
        references = (
            ("memberOf", parcel.conditions.member_of),
            ("requires", parcel.conditions.requires),
        )
        for field, names in references:
            for name in names or ():
                if name == GLOBAL_GROUP:
                    problems.append(
                        SchemaProblem(
                            location=f"{location}.conditions.{field}",
                            message="the global group cannot be referenced explicitly",
                        )
                    )
                elif name not in declared:
                    unknown.append(GroupReference(group=name, source=parcel.name, field=field))

    if problems:
        raise SchemaError(problems if collect_all else problems[:1])
    if unknown:
        raise UnknownGroupReference(unknown if collect_all else unknown[:1])


def build_invoice(raw: Mapping[str, Any], *, collect_all: bool = False) -> Invoice:
    """Build a validated :class:`Invoice` from decoded raw fields.

    Args:
        raw: Decoded invoice mapping (e.g. the result of ``tomllib.loads``).
        collect_all: Report every problem instead of only the first.

    Raises:
        SchemaError: Malformed fields or broken naming invariants.
        UnknownGroupReference: A condition names an undeclared group.
    """
    try:
        invoice = Invoice.model_validate(raw)
    except ValidationError as exc:
        problems = [
            SchemaProblem(location=_locate(raw, err["loc"]), message=err["msg"])
            for err in exc.errors()
        ]
        raise SchemaError(problems if collect_all else problems[:1]) from exc
    validate_invoice(invoice, collect_all=collect_all)
    return invoice


def ensure_not_yanked(invoice: Invoice, *, allow_yanked: bool = False) -> None:
    """Refuse to proceed with a yanked invoice unless explicitly allowed."""
    if invoice.yanked and not allow_yanked:
        raise YankedInvoice(invoice.name)
