"""Affected-frontier closure over a typed artifact/entity/correspondence graph.

Given the edited artifacts, an entity migration map and the support set of
one observation, :func:`compute_frontier` returns the least affected
frontier: the correspondences and build edges of the support that a change
can reach, each with the reasons it was included. Every index and result
is ordered, so the output is deterministic.
"""

from __future__ import annotations

import abc
from collections import defaultdict, deque
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Union


@dataclass(frozen=True)
class Artifact:
    """A file or build product in a repository checkout."""

    artifact_id: str


@dataclass(frozen=True)
class Entity:
    """A typed program entity owned by one artifact."""

    entity_id: str
    artifact_id: str


@dataclass(frozen=True)
class Correspondence:
    """A cross-language link between entities."""

    corr_id: str
    endpoints: tuple[str, ...] = ()
    kind: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "endpoints", tuple(self.endpoints))


@dataclass(frozen=True)
class BuildEdge:
    """A build or code-generation step from one artifact to another."""

    edge_id: str
    src_artifact: str
    dst_artifact: str


class GraphReadModel(abc.ABC):
    """Read access to the graph rows a frontier is computed over."""

    @abc.abstractmethod
    def list_artifacts(self) -> list[Artifact]:
        """All artifact rows."""

    @abc.abstractmethod
    def list_entities(self) -> list[Entity]:
        """All entity rows."""

    @abc.abstractmethod
    def list_correspondences(self) -> list[Correspondence]:
        """All correspondence rows."""

    @abc.abstractmethod
    def list_build_edges(self) -> list[BuildEdge]:
        """All build edge rows."""


class InMemoryGraph(GraphReadModel):
    """Graph rows held in memory; saving a row with an existing id replaces it."""

    def __init__(self) -> None:
        self._artifacts: dict[str, Artifact] = {}
        self._entities: dict[str, Entity] = {}
        self._correspondences: dict[str, Correspondence] = {}
        self._build_edges: dict[str, BuildEdge] = {}

    def save_artifact(self, artifact: Artifact) -> None:
        self._artifacts[artifact.artifact_id] = artifact

    def save_entity(self, entity: Entity) -> None:
        self._entities[entity.entity_id] = entity

    def save_correspondence(self, correspondence: Correspondence) -> None:
        self._correspondences[correspondence.corr_id] = correspondence

    def save_build_edge(self, edge: BuildEdge) -> None:
        self._build_edges[edge.edge_id] = edge

    def list_artifacts(self) -> list[Artifact]:
        return [self._artifacts[key] for key in sorted(self._artifacts)]

    def list_entities(self) -> list[Entity]:
        return [self._entities[key] for key in sorted(self._entities)]

    def list_correspondences(self) -> list[Correspondence]:
        return [self._correspondences[key] for key in sorted(self._correspondences)]

    def list_build_edges(self) -> list[BuildEdge]:
        return [self._build_edges[key] for key in sorted(self._build_edges)]


class SupportKind(Enum):
    """What a support reference points at."""

    CORR = "corr"
    EDGE = "edge"


@dataclass(frozen=True)
class SupportRef:
    """One element of an observation's support set."""

    kind: SupportKind
    id: str


class FrontierItemKind(IntEnum):
    """Kind of frontier item; correspondences sort before build edges."""

    CORRESPONDENCE = 0
    BUILD_EDGE = 1


@dataclass(frozen=True, order=True)
class FrontierItem:
    """A correspondence or build edge in the frontier."""

    kind: FrontierItemKind
    id: str


class FrontierReason(IntEnum):
    """Why a frontier item was included, in canonical order."""

    TOUCHED_ENDPOINT = 0
    EDITED_ARTIFACT_BUILD = 1
    GENERATED_ARTIFACT_BUILD = 2
    REACHABLE_SUPPORT = 3


@dataclass(frozen=True)
class FrontierEntry:
    """A frontier item with its sorted, deduplicated inclusion reasons."""

    item: FrontierItem
    reasons: tuple[FrontierReason, ...]


class FrontierDiagnosticKind(IntEnum):
    """Diagnostic category."""

    MISSING_SUPPORT = 0
    MISSING_GRAPH_ENDPOINT = 1


@dataclass(frozen=True)
class FrontierDiagnostic:
    """A fail-closed problem found while computing the frontier."""

    kind: FrontierDiagnosticKind
    observation_id: str
    item: str


MigrationMapLike = Union[Mapping[str, str], Iterable[tuple[str, str]]]


@dataclass
class FrontierInput:
    """Edited artifacts, migration map and support of one observation."""

    observation_id: str
    edited_artifacts: frozenset[str] = frozenset()
    migration_map: MigrationMapLike = field(default_factory=dict)
    support: tuple[SupportRef, ...] = ()

    def __post_init__(self) -> None:
        self.edited_artifacts = frozenset(self.edited_artifacts)
        self.support = tuple(self.support)

    def migration_pairs(self) -> list[tuple[str, str]]:
        if isinstance(self.migration_map, Mapping):
            return list(self.migration_map.items())
        return list(self.migration_map)


@dataclass(frozen=True)
class FrontierResult:
    """Sorted frontier entries and sorted, deduplicated diagnostics."""

    entries: tuple[FrontierEntry, ...]
    diagnostics: tuple[FrontierDiagnostic, ...]


class _GraphIndexes:
    def __init__(self, graph: GraphReadModel) -> None:
        artifacts = {artifact.artifact_id for artifact in graph.list_artifacts()}
        self.artifact_entities: dict[str, set[str]] = defaultdict(set)
        self.entity_artifact: dict[str, str] = {}
        self.entity_corrs: dict[str, set[str]] = defaultdict(set)
        self.corr_endpoints: dict[str, set[str]] = {}
        self.build_edges: dict[str, BuildEdge] = {}
        self.build_out: dict[str, set[str]] = defaultdict(set)
        self.build_in: dict[str, set[str]] = defaultdict(set)
        self.missing_refs: set[str] = set()

        for entity in graph.list_entities():
            if entity.artifact_id in artifacts:
                self.artifact_entities[entity.artifact_id].add(entity.entity_id)
                self.entity_artifact[entity.entity_id] = entity.artifact_id
            else:
                self.missing_refs.add(f"entity:{entity.entity_id}->{entity.artifact_id}")

        for corr in graph.list_correspondences():
            endpoints: set[str] = set()
            for endpoint in corr.endpoints:
                if endpoint in self.entity_artifact:
                    self.entity_corrs[endpoint].add(corr.corr_id)
                    endpoints.add(endpoint)
                else:
                    self.missing_refs.add(f"corr:{corr.corr_id}->{endpoint}")
            self.corr_endpoints[corr.corr_id] = endpoints

        for edge in graph.list_build_edges():
            if edge.src_artifact not in artifacts:
                self.missing_refs.add(f"edge:{edge.edge_id}->{edge.src_artifact}")
                continue
            if edge.dst_artifact not in artifacts:
                self.missing_refs.add(f"edge:{edge.edge_id}->{edge.dst_artifact}")
                continue
            self.build_out[edge.src_artifact].add(edge.edge_id)
            self.build_in[edge.dst_artifact].add(edge.edge_id)
            self.build_edges[edge.edge_id] = edge

    def integrity_diagnostics(self, observation_id: str) -> list[FrontierDiagnostic]:
        return [
            FrontierDiagnostic(FrontierDiagnosticKind.MISSING_GRAPH_ENDPOINT, observation_id, item)
            for item in sorted(self.missing_refs)
        ]


def _normalize_support(support: Iterable[SupportRef]) -> list[SupportRef]:
    keyed = {ref.id: ref for ref in support if ref.kind in (SupportKind.CORR, SupportKind.EDGE)}
    return [keyed[key] for key in sorted(keyed)]


def _as_item(ref: SupportRef) -> FrontierItem:
    kind = (
        FrontierItemKind.CORRESPONDENCE
        if ref.kind is SupportKind.CORR
        else FrontierItemKind.BUILD_EDGE
    )
    return FrontierItem(kind, ref.id)


def _validate_support(
    indexes: _GraphIndexes, observation_id: str, support: list[SupportRef]
) -> list[FrontierDiagnostic]:
    missing = [
        ref.id
        for ref in support
        if (ref.kind is SupportKind.CORR and ref.id not in indexes.corr_endpoints)
        or (ref.kind is SupportKind.EDGE and ref.id not in indexes.build_edges)
    ]
    return [
        FrontierDiagnostic(FrontierDiagnosticKind.MISSING_SUPPORT, observation_id, item)
        for item in missing
    ]


def _compute_touch(indexes: _GraphIndexes, frontier_input: FrontierInput) -> set[str]:
    touch: set[str] = set()
    for artifact in frontier_input.edited_artifacts:
        touch.update(indexes.artifact_entities.get(artifact, ()))
    for old, new in frontier_input.migration_pairs():
        touch.update(entity for entity in (old, new) if entity in indexes.entity_artifact)
    return touch


def _reachable_items(indexes: _GraphIndexes, touch: set[str]) -> tuple[set[str], set[str]]:
    """Correspondences and build edges reachable from ``touch`` through the graph."""
    reached_entities = set(touch)
    reached_artifacts: set[str] = set()
    reached_corrs: set[str] = set()
    reached_edges: set[str] = set()
    work: deque[tuple[str, str]] = deque(("entity", entity) for entity in sorted(touch))

    while work:
        node_kind, node = work.popleft()
        if node_kind == "entity":
            artifact = indexes.entity_artifact.get(node)
            if artifact is not None and artifact not in reached_artifacts:
                reached_artifacts.add(artifact)
                work.append(("artifact", artifact))
            for corr in sorted(indexes.entity_corrs.get(node, ())):
                if corr in reached_corrs:
                    continue
                reached_corrs.add(corr)
                for endpoint in sorted(indexes.corr_endpoints.get(corr, ())):
                    if endpoint not in reached_entities:
                        reached_entities.add(endpoint)
                        work.append(("entity", endpoint))
        else:
            for entity in sorted(indexes.artifact_entities.get(node, ())):
                if entity not in reached_entities:
                    reached_entities.add(entity)
                    work.append(("entity", entity))
            neighbours = sorted(indexes.build_out.get(node, ())) + sorted(
                indexes.build_in.get(node, ())
            )
            for edge_id in neighbours:
                edge = indexes.build_edges.get(edge_id)
                if edge is None:
                    continue
                reached_edges.add(edge_id)
                for nxt in (edge.src_artifact, edge.dst_artifact):
                    if nxt not in reached_artifacts:
                        reached_artifacts.add(nxt)
                        work.append(("artifact", nxt))

    return reached_corrs, reached_edges


def _artifacts_reaching_support(
    indexes: _GraphIndexes, support_items: set[FrontierItem]
) -> set[str]:
    """Artifacts from which a support element is reachable through build edges."""
    reaches: set[str] = set()
    for item in sorted(support_items):
        if item.kind is FrontierItemKind.BUILD_EDGE:
            edge = indexes.build_edges.get(item.id)
            if edge is not None:
                reaches.add(edge.src_artifact)
        else:
            for endpoint in indexes.corr_endpoints.get(item.id, ()):
                artifact = indexes.entity_artifact.get(endpoint)
                if artifact is not None:
                    reaches.add(artifact)

    work = deque(sorted(reaches))
    while work:
        artifact = work.popleft()
        for edge_id in sorted(indexes.build_in.get(artifact, ())):
            edge = indexes.build_edges.get(edge_id)
            if edge is not None and edge.src_artifact not in reaches:
                reaches.add(edge.src_artifact)
                work.append(edge.src_artifact)
    return reaches


def _seed_build_closure(
    indexes: _GraphIndexes,
    frontier_input: FrontierInput,
    support_items: set[FrontierItem],
    reasons: dict[FrontierItem, set[FrontierReason]],
) -> None:
    # A build edge is required when it is forward-reachable from an edited artifact
    # and is either in the support or leads to an artifact that reaches the support.
    reaches_supp = _artifacts_reaching_support(indexes, support_items)
    edited = frontier_input.edited_artifacts
    reached = set(edited)
    work = deque(sorted(edited))

    while work:
        artifact = work.popleft()
        reason = (
            FrontierReason.EDITED_ARTIFACT_BUILD
            if artifact in edited
            else FrontierReason.GENERATED_ARTIFACT_BUILD
        )
        for edge_id in sorted(indexes.build_out.get(artifact, ())):
            edge = indexes.build_edges.get(edge_id)
            if edge is None:
                continue
            item = FrontierItem(FrontierItemKind.BUILD_EDGE, edge_id)
            if item in support_items or edge.dst_artifact in reaches_supp:
                reasons[item].add(reason)
            if edge.dst_artifact not in reached:
                reached.add(edge.dst_artifact)
                work.append(edge.dst_artifact)


def compute_frontier(graph: GraphReadModel, frontier_input: FrontierInput) -> FrontierResult:
    """Compute the deterministic affected frontier for one observation.

    Errors raised by the read model propagate unchanged.
    """
    indexes = _GraphIndexes(graph)
    observation_id = frontier_input.observation_id
    support = _normalize_support(frontier_input.support)
    support_items = {_as_item(ref) for ref in support}

    diagnostics = _validate_support(indexes, observation_id, support)
    diagnostics.extend(indexes.integrity_diagnostics(observation_id))

    touch = _compute_touch(indexes, frontier_input)
    reachable_corrs, reachable_edges = _reachable_items(indexes, touch)
    reasons: dict[FrontierItem, set[FrontierReason]] = defaultdict(set)

    for entity in touch:
        for corr in indexes.entity_corrs.get(entity, ()):
            item = FrontierItem(FrontierItemKind.CORRESPONDENCE, corr)
            if item in support_items:
                reasons[item].add(FrontierReason.TOUCHED_ENDPOINT)

    _seed_build_closure(indexes, frontier_input, support_items, reasons)

    for ref in support:
        reachable = reachable_corrs if ref.kind is SupportKind.CORR else reachable_edges
        if ref.id in reachable:
            reasons[_as_item(ref)].add(FrontierReason.REACHABLE_SUPPORT)

    entries = tuple(
        FrontierEntry(item, tuple(sorted(reasons[item]))) for item in sorted(reasons)
    )
    unique = {(d.observation_id, d.kind, d.item): d for d in diagnostics}
    sorted_diagnostics = tuple(unique[key] for key in sorted(unique))
    return FrontierResult(entries=entries, diagnostics=sorted_diagnostics)