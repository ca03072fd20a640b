"""Fail-closed coverage-risk classification for one observation.

The classifier is pure: it takes an already computed frontier together with
registry, migration-map and extractor diagnostics, and reports the unknown
reasons that block later acceptance. It assigns no final statuses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from polyref.frontier import FrontierResult


class UnknownReason(str, Enum):
    """Why an item cannot be decided, valued by its canonical key."""

    DYNAMIC_STRING = "dynamic_string"
    MIGRATION_MAP_AMBIGUOUS = "migration_map_ambiguous"
    MISSING_ENDPOINT = "missing_endpoint"
    OBSERVATION_REWRITE_UNDEFINED = "observation_rewrite_undefined"
    UNSUPPORTED_EXTRACTOR = "unsupported_extractor"
    UNSUPPORTED_FRAMEWORK = "unsupported_framework"


class ObservationRegistryDiagnosticKind(Enum):
    """Category of an observation registry diagnostic."""

    MISSING_SUPPORT = "missing_support"
    UNSUPPORTED_EVIDENCE = "unsupported_evidence"
    DUPLICATE_SUPPORT = "duplicate_support"
    INVALID_OBSERVATION_ID = "invalid_observation_id"


@dataclass(frozen=True)
class ObservationRegistryDiagnostic:
    """A problem reported while registering an observation."""

    kind: ObservationRegistryDiagnosticKind
    observation_id: str
    item: str | None = None


class MigrationMapDiagnosticKind(Enum):
    """Category of a migration-map builder diagnostic."""

    MIGRATION_MAP_AMBIGUOUS = "migration_map_ambiguous"
    MISSING_ENDPOINT = "missing_endpoint"
    MIGRATION_MAP_CONFLICT = "migration_map_conflict"
    KIND_MISMATCH = "kind_mismatch"


@dataclass(frozen=True)
class MigrationMapDiagnostic:
    """A problem reported while building the entity migration map."""

    kind: MigrationMapDiagnosticKind
    old: str
    targets: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "targets", tuple(self.targets))


@dataclass(frozen=True)
class UnsupportedFeatureRiskNote:
    """Sanitized unsupported-feature note from an extractor."""

    feature: str
    artifact_id: str | None = None
    entity_id: str | None = None


class CoverageRiskSource(str, Enum):
    """Subsystem that produced a coverage risk, valued by its canonical key."""

    FRONTIER = "frontier"
    OBSERVATION_REGISTRY = "observation_registry"
    MIGRATION_MAP = "migration_map"
    EXTRACTOR = "extractor"


@dataclass
class CoverageRiskInput:
    """Everything the classifier looks at for one observation."""

    observation_id: str
    frontier: FrontierResult = field(
        default_factory=lambda: FrontierResult(entries=(), diagnostics=())
    )
    support: tuple = ()
    registry_diagnostics: tuple[ObservationRegistryDiagnostic, ...] = ()
    migration_diagnostics: tuple[MigrationMapDiagnostic, ...] = ()
    unsupported_features: tuple[UnsupportedFeatureRiskNote, ...] = ()

    def __post_init__(self) -> None:
        self.support = tuple(self.support)
        self.registry_diagnostics = tuple(self.registry_diagnostics)
        self.migration_diagnostics = tuple(self.migration_diagnostics)
        self.unsupported_features = tuple(self.unsupported_features)


@dataclass(frozen=True)
class CoverageRisk:
    """One fail-closed coverage risk."""

    reason: UnknownReason
    source: CoverageRiskSource
    observation_id: str
    item: str


@dataclass(frozen=True)
class CoverageRiskReport:
    """Sorted, deduplicated coverage risks for one observation."""

    observation_id: str
    risks: tuple[CoverageRisk, ...]
    is_blocked: bool


_RiskKey = tuple[str, str, str, str]


def _sanitize_item(item: str) -> str:
    trimmed = item.strip()
    if trimmed.startswith("/") or "/Users/" in trimmed or "SECRET" in trimmed:
        return "redacted"
    return trimmed


def _is_dynamic_feature(feature: str) -> bool:
    return (
        "dynamic_route" in feature
        or "dynamic_string" in feature
        or feature == "dynamic"
        or "dynamic_route_path" in feature
    )


def _classify_unsupported_feature(feature: str) -> UnknownReason:
    if _is_dynamic_feature(feature):
        return UnknownReason.DYNAMIC_STRING
    if "framework" in feature:
        return UnknownReason.UNSUPPORTED_FRAMEWORK
    return UnknownReason.UNSUPPORTED_EXTRACTOR


def _unsupported_item(note: UnsupportedFeatureRiskNote) -> str:
    if note.entity_id is not None:
        return f"{note.feature}:{note.entity_id}"
    if note.artifact_id is not None:
        return f"{note.feature}:{note.artifact_id}"
    return note.feature


def classify_coverage_risk(risk_input: CoverageRiskInput) -> CoverageRiskReport:
    """Classify fail-closed coverage risks without assigning final statuses."""
    observation_id = risk_input.observation_id
    risks: dict[_RiskKey, CoverageRisk] = {}

    def insert(reason: UnknownReason, source: CoverageRiskSource, item: str) -> None:
        sanitized = _sanitize_item(item)
        key = (observation_id, reason.value, source.value, sanitized)
        risks.setdefault(key, CoverageRisk(reason, source, observation_id, sanitized))

    for diagnostic in risk_input.frontier.diagnostics:
        insert(UnknownReason.MISSING_ENDPOINT, CoverageRiskSource.FRONTIER, diagnostic.item)

    for diagnostic in risk_input.registry_diagnostics:
        if diagnostic.observation_id != observation_id:
            continue
        if diagnostic.kind is ObservationRegistryDiagnosticKind.MISSING_SUPPORT:
            insert(
                UnknownReason.MISSING_ENDPOINT,
                CoverageRiskSource.OBSERVATION_REGISTRY,
                diagnostic.item if diagnostic.item is not None else "missing_support",
            )
        elif diagnostic.kind is ObservationRegistryDiagnosticKind.UNSUPPORTED_EVIDENCE:
            item = (
                diagnostic.item
                if diagnostic.item is not None
                else "unsupported_observation_evidence"
            )
            reason = (
                UnknownReason.DYNAMIC_STRING
                if _is_dynamic_feature(item)
                else UnknownReason.OBSERVATION_REWRITE_UNDEFINED
            )
            insert(reason, CoverageRiskSource.OBSERVATION_REGISTRY, item)

    for diagnostic in risk_input.migration_diagnostics:
        if diagnostic.kind is MigrationMapDiagnosticKind.MIGRATION_MAP_AMBIGUOUS:
            insert(
                UnknownReason.MIGRATION_MAP_AMBIGUOUS,
                CoverageRiskSource.MIGRATION_MAP,
                str(diagnostic.old),
            )
        elif diagnostic.kind is MigrationMapDiagnosticKind.MISSING_ENDPOINT:
            insert(
                UnknownReason.MISSING_ENDPOINT,
                CoverageRiskSource.MIGRATION_MAP,
                str(diagnostic.old),
            )

    for note in risk_input.unsupported_features:
        insert(
            _classify_unsupported_feature(note.feature),
            CoverageRiskSource.EXTRACTOR,
            _unsupported_item(note),
        )

    ordered = tuple(risks[key] for key in sorted(risks))
    return CoverageRiskReport(
        observation_id=observation_id,
        risks=ordered,
        is_blocked=bool(ordered),
    )