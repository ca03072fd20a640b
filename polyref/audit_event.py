"""Audit-log events: one validated JSON object per line of an NDJSON log.

The log is the replay anchor for a validation run. Payloads themselves
are never stored, only their SHA-256 hash, which must be 64 lowercase
hex characters.
"""

from __future__ import annotations

import copy
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

REPORT_ID_MAX_LEN = 256
STAGE_MAX_LEN = 64
ACTOR_MAX_LEN = 256
PAYLOAD_HASH_LEN = 64

_LOWER_HEX = frozenset("0123456789abcdef")
_REQUIRED_FIELDS = ("ts", "report_id", "stage", "tag", "actor", "payload_hash")
_KNOWN_FIELDS = frozenset(_REQUIRED_FIELDS) | {"evidence_pointers"}


class AuditEventTagParseError(ValueError):
    """A string is not one of the closed audit event tags."""

    def __init__(self, value: str) -> None:
        super().__init__(f"unknown AuditEventTag tag: {value}")
        self.value = value


class AuditEventTag(str, Enum):
    """Closed set of audit event tags, valued by their snake-case wire form."""

    ARTIFACT_CLASSIFIED = "artifact_classified"
    CHECKER_INVOKED = "checker_invoked"
    CHECKER_RESULT = "checker_result"
    CORRESPONDENCE_CREATED = "correspondence_created"
    ENTITY_EMITTED = "entity_emitted"
    EXTRACTOR_INVOKED = "extractor_invoked"
    FRONTIER_COMPUTED = "frontier_computed"
    FRONTIER_ITEM_STATUS_ASSIGNED = "frontier_item_status_assigned"
    MIGRATION_MAP_BUILT = "migration_map_built"
    OBLIGATION_EMITTED = "obligation_emitted"
    OBSERVATION_REWRITTEN = "observation_rewritten"
    OBSERVATION_STATUS_ASSIGNED = "observation_status_assigned"
    REPLAY_COMPLETED = "replay_completed"
    REPO_LOADED = "repo_loaded"
    REPORT_FINALIZED = "report_finalized"
    SANDBOX_DENIED = "sandbox_denied"
    SANDBOX_STARTED = "sandbox_started"

    def as_tag(self) -> str:
        """The canonical snake-case tag."""
        return self.value

    @classmethod
    def parse(cls, s: str) -> AuditEventTag:
        """Parse a canonical snake-case tag; the inverse of :meth:`as_tag`."""
        if isinstance(s, str):
            for member in cls:
                if member.value == s:
                    return member
        raise AuditEventTagParseError(str(s))

    def __str__(self) -> str:
        return self.value


class AuditEventError(ValueError):
    """An audit event failed validation against the schema caps."""


class EmptyFieldError(AuditEventError):
    """A required string field was empty."""

    def __init__(self, field_name: str) -> None:
        super().__init__(f"audit event field {field_name} is empty")
        self.field = field_name


class FieldTooLongError(AuditEventError):
    """A string field exceeded its length cap (in UTF-8 bytes)."""

    def __init__(self, field_name: str, length: int, maximum: int) -> None:
        super().__init__(f"audit event field {field_name} too long: {length} > {maximum}")
        self.field = field_name
        self.length = length
        self.max = maximum


class BadPayloadHashError(AuditEventError):
    """``payload_hash`` is not 64 lowercase hex characters."""

    def __init__(self) -> None:
        super().__init__("audit event payload_hash is not 64 lowercase hex chars")


def _check_string(field_name: str, value: str, maximum: int) -> None:
    if not value:
        raise EmptyFieldError(field_name)
    length = len(value.encode("utf-8"))
    if length > maximum:
        raise FieldTooLongError(field_name, length, maximum)


@dataclass
class AuditEvent:
    """One audit-log line."""

    ts: str
    report_id: str
    stage: str
    tag: AuditEventTag
    actor: str
    payload_hash: str
    evidence_pointers: list[Any] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        ts: str,
        report_id: str,
        stage: str,
        tag: AuditEventTag | str,
        actor: str,
        payload_hash: str,
        evidence_pointers: list[Any] | None = None,
    ) -> AuditEvent:
        """Build an event and validate every field against the schema caps."""
        if not isinstance(tag, AuditEventTag):
            tag = AuditEventTag.parse(tag)
        event = cls(
            ts=ts,
            report_id=report_id,
            stage=stage,
            tag=tag,
            actor=actor,
            payload_hash=payload_hash,
            evidence_pointers=list(evidence_pointers or []),
        )
        event.validate()
        return event

    def validate(self) -> None:
        """Raise :class:`AuditEventError` if any field breaks the schema caps."""
        if not self.ts:
            raise EmptyFieldError("ts")
        _check_string("report_id", self.report_id, REPORT_ID_MAX_LEN)
        _check_string("stage", self.stage, STAGE_MAX_LEN)
        _check_string("actor", self.actor, ACTOR_MAX_LEN)
        digest = self.payload_hash
        if (
            not isinstance(digest, str)
            or len(digest.encode("utf-8")) != PAYLOAD_HASH_LEN
            or not set(digest) <= _LOWER_HEX
        ):
            raise BadPayloadHashError()

    def to_dict(self) -> dict[str, Any]:
        """Wire mapping; ``evidence_pointers`` is omitted when empty."""
        data: dict[str, Any] = {
            "ts": self.ts,
            "report_id": self.report_id,
            "stage": self.stage,
            "tag": self.tag.as_tag(),
            "actor": self.actor,
            "payload_hash": self.payload_hash,
        }
        if self.evidence_pointers:
            data["evidence_pointers"] = copy.deepcopy(self.evidence_pointers)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AuditEvent:
        """Decode a wire mapping, rejecting unknown fields and unknown tags.

        Structural problems raise :class:`ValueError`; schema caps are not
        checked here, call :meth:`validate` for that.
        """
        if not isinstance(data, Mapping):
            raise ValueError("audit event must be a JSON object")
        unknown = sorted(set(data) - _KNOWN_FIELDS)
        if unknown:
            raise ValueError(f"unknown audit event field: {unknown[0]}")
        for name in _REQUIRED_FIELDS:
            if name not in data:
                raise ValueError(f"missing audit event field: {name}")
            if not isinstance(data[name], str):
                raise ValueError(f"audit event field {name} must be a string")
        pointers = data.get("evidence_pointers", [])
        if not isinstance(pointers, list):
            raise ValueError("audit event field evidence_pointers must be a list")
        return cls(
            ts=data["ts"],
            report_id=data["report_id"],
            stage=data["stage"],
            tag=AuditEventTag.parse(data["tag"]),
            actor=data["actor"],
            payload_hash=data["payload_hash"],
            evidence_pointers=copy.deepcopy(pointers),
        )

    def to_json(self) -> str:
        """Compact single-line JSON form."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> AuditEvent:
        """Decode one JSON line; malformed input raises :class:`ValueError`."""
        return cls.from_dict(json.loads(text))