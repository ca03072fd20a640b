from dataclasses import dataclass

import pytest

from polyref.frontier import (
    Artifact,
    BuildEdge,
    Correspondence,
    Entity,
    FrontierDiagnostic,
    FrontierDiagnosticKind,
    FrontierInput,
    FrontierItem,
    FrontierItemKind,
    FrontierReason,
    GraphReadModel,
    InMemoryGraph,
    SupportKind,
    SupportRef,
    compute_frontier,
)

OLD_ROUTE = "old:openapi:route:openapi.yaml#/paths/~1users/post:aaaaaaaaaaaa"
NEW_ROUTE = "new:openapi:route:openapi.yaml#/paths/~1v2~1users/post:bbbbbbbbbbbb"
CLIENT = "old:ts:generated_client:client/sdk.ts#users:cccccccccccc"
UNRELATED_ENTITY = "old:py:event:unrelated.py#event:dddddddddddd"
SOURCE = "artifact:old:openapi.yaml:111111111111"
GENERATED = "artifact:old:client/sdk.ts:222222222222"
BUNDLE = "artifact:old:dist/client.js:333333333333"
UNRELATED = "artifact:old:unrelated.py:444444444444"
ROUTE_CORR = "corr:route:0000000000000001"
FIRST_EDGE = "edge:build_codegen:0000000000000001"
SECOND_EDGE = "edge:build_codegen:0000000000000002"


@dataclass
class SmallGraph:
    store: InMemoryGraph


def small_graph() -> InMemoryGraph:
    store = InMemoryGraph()
    for artifact_id in (SOURCE, GENERATED, BUNDLE, UNRELATED):
        store.save_artifact(Artifact(artifact_id))
    store.save_entity(Entity(OLD_ROUTE, SOURCE))
    store.save_entity(Entity(NEW_ROUTE, SOURCE))
    store.save_entity(Entity(CLIENT, GENERATED))
    store.save_entity(Entity(UNRELATED_ENTITY, UNRELATED))
    store.save_correspondence(Correspondence(ROUTE_CORR, (OLD_ROUTE, CLIENT), "route"))
    store.save_build_edge(BuildEdge(FIRST_EDGE, SOURCE, GENERATED))
    store.save_build_edge(BuildEdge(SECOND_EDGE, GENERATED, BUNDLE))
    return store


def corr(value):
    return SupportRef(SupportKind.CORR, value)


def edge(value):
    return SupportRef(SupportKind.EDGE, value)


def edge_items(entries):
    return [e.item.id for e in entries if e.item.kind is FrontierItemKind.BUILD_EDGE]


def corr_items(entries):
    return [e.item.id for e in entries if e.item.kind is FrontierItemKind.CORRESPONDENCE]


def find(entries, item):
    return next(e for e in entries if e.item == item)


def test_touched_correspondence_enters_frontier():
    store = small_graph()
    frontier_input = FrontierInput(
        observation_id="obs:test",
        migration_map={OLD_ROUTE: NEW_ROUTE},
        support=[corr(ROUTE_CORR)],
    )
    result = compute_frontier(store, frontier_input)
    entry = find(result.entries, FrontierItem(FrontierItemKind.CORRESPONDENCE, ROUTE_CORR))
    assert FrontierReason.TOUCHED_ENDPOINT in entry.reasons


def test_migration_map_accepts_pairs():
    store = small_graph()
    frontier_input = FrontierInput(
        observation_id="obs:test",
        migration_map=[(OLD_ROUTE, NEW_ROUTE)],
        support=[corr(ROUTE_CORR)],
    )
    result = compute_frontier(store, frontier_input)
    assert corr_items(result.entries) == [ROUTE_CORR]


def test_edited_artifact_build_chain_enters_frontier():
    store = small_graph()
    frontier_input = FrontierInput(
        observation_id="obs:test",
        edited_artifacts={SOURCE},
        support=[edge(FIRST_EDGE), edge(SECOND_EDGE)],
    )
    result = compute_frontier(store, frontier_input)
    assert edge_items(result.entries) == [FIRST_EDGE, SECOND_EDGE]
    first = find(result.entries, FrontierItem(FrontierItemKind.BUILD_EDGE, FIRST_EDGE))
    second = find(result.entries, FrontierItem(FrontierItemKind.BUILD_EDGE, SECOND_EDGE))
    assert FrontierReason.EDITED_ARTIFACT_BUILD in first.reasons
    assert FrontierReason.GENERATED_ARTIFACT_BUILD in second.reasons


def test_reachable_support_enters_and_unreachable_support_stays_out():
    store = small_graph()
    unrelated = "corr:event:0000000000000009"
    store.save_correspondence(Correspondence(unrelated, (UNRELATED_ENTITY,), "event"))
    frontier_input = FrontierInput(
        observation_id="obs:test",
        edited_artifacts={SOURCE},
        support=[corr(ROUTE_CORR), corr(unrelated)],
    )
    result = compute_frontier(store, frontier_input)
    route = find(result.entries, FrontierItem(FrontierItemKind.CORRESPONDENCE, ROUTE_CORR))
    assert FrontierReason.REACHABLE_SUPPORT in route.reasons
    assert all(e.item.id != unrelated for e in result.entries)


def test_missing_support_emits_diagnostic_and_is_not_accepted():
    store = small_graph()
    missing = "corr:route:9999999999999999"
    frontier_input = FrontierInput(
        observation_id="obs:test",
        edited_artifacts={SOURCE},
        support=[corr(missing)],
    )
    result = compute_frontier(store, frontier_input)
    assert result.diagnostics == (
        FrontierDiagnostic(FrontierDiagnosticKind.MISSING_SUPPORT, "obs:test", missing),
    )
    assert all(e.item.id != missing for e in result.entries)


def test_intermediate_codegen_edge_outside_supp_enters_required_frontier():
    store = InMemoryGraph()
    spec = "artifact:old:spec.yaml:aaaaaaaaaaaa"
    client = "artifact:old:client.ts:bbbbbbbbbbbb"
    bundle = "artifact:old:bundle.js:cccccccccccc"
    for artifact_id in (spec, client, bundle):
        store.save_artifact(Artifact(artifact_id))
    edge_ab = "edge:build_codegen:00000000000000a1"
    edge_bc = "edge:build_codegen:00000000000000b2"
    store.save_build_edge(BuildEdge(edge_ab, spec, client))
    store.save_build_edge(BuildEdge(edge_bc, client, bundle))
    frontier_input = FrontierInput(
        observation_id="obs:test", edited_artifacts={spec}, support=[edge(edge_bc)]
    )
    edges = edge_items(compute_frontier(store, frontier_input).entries)
    assert edge_ab in edges
    assert edge_bc in edges


def test_build_edge_off_the_support_path_is_excluded():
    store = small_graph()
    store.save_artifact(Artifact("artifact:old:side.txt:555555555555"))
    side_edge = "edge:build_codegen:0000000000000007"
    store.save_build_edge(BuildEdge(side_edge, SOURCE, "artifact:old:side.txt:555555555555"))
    frontier_input = FrontierInput(
        observation_id="obs:test", edited_artifacts={SOURCE}, support=[edge(SECOND_EDGE)]
    )
    edges = edge_items(compute_frontier(store, frontier_input).entries)
    assert edges == [FIRST_EDGE, SECOND_EDGE]


def test_closure_is_idempotent_for_same_graph_and_input():
    store = small_graph()
    frontier_input = FrontierInput(
        observation_id="obs:test",
        edited_artifacts={SOURCE},
        support=[corr(ROUTE_CORR), edge(FIRST_EDGE), edge(SECOND_EDGE)],
    )
    first = compute_frontier(store, frontier_input)
    second = compute_frontier(store, frontier_input)
    assert first == second
    assert len(first.entries) == 3


def test_frontier_items_as_support_reproduce_the_frontier():
    store = small_graph()
    frontier_input = FrontierInput(
        observation_id="obs:test",
        edited_artifacts={SOURCE},
        support=[corr(ROUTE_CORR), edge(SECOND_EDGE), edge(FIRST_EDGE)],
    )
    first = compute_frontier(store, frontier_input)
    support = [
        corr(e.item.id) if e.item.kind is FrontierItemKind.CORRESPONDENCE else edge(e.item.id)
        for e in first.entries
    ]
    again = compute_frontier(
        store,
        FrontierInput(observation_id="obs:test", edited_artifacts={SOURCE}, support=support),
    )
    assert again == first


def test_entries_sorted_with_correspondences_first_and_nonempty_reasons():
    store = small_graph()
    frontier_input = FrontierInput(
        observation_id="obs:test",
        edited_artifacts={SOURCE},
        support=[edge(SECOND_EDGE), edge(FIRST_EDGE), corr(ROUTE_CORR)],
    )
    entries = compute_frontier(store, frontier_input).entries
    items = [e.item for e in entries]
    assert items == sorted(items)
    assert items[0] == FrontierItem(FrontierItemKind.CORRESPONDENCE, ROUTE_CORR)
    for entry in entries:
        assert entry.reasons
        assert list(entry.reasons) == sorted(set(entry.reasons))


def test_missing_graph_endpoints_are_reported_sorted():
    store = small_graph()
    store.save_entity(Entity("old:py:handler:x.py#f:eeeeeeeeeeee", "artifact:old:gone.py:0"))
    store.save_correspondence(Correspondence("corr:route:0000000000000005", ("ghost",)))
    store.save_build_edge(BuildEdge("edge:build_codegen:0000000000000009", SOURCE, "nowhere"))
    result = compute_frontier(store, FrontierInput(observation_id="obs:x"))
    assert [d.item for d in result.diagnostics] == [
        "corr:corr:route:0000000000000005->ghost",
        "edge:edge:build_codegen:0000000000000009->nowhere",
        "entity:old:py:handler:x.py#f:eeeeeeeeeeee->artifact:old:gone.py:0",
    ]
    assert all(
        d.kind is FrontierDiagnosticKind.MISSING_GRAPH_ENDPOINT for d in result.diagnostics
    )
    assert result.entries == ()


def test_duplicate_support_is_reported_once():
    store = small_graph()
    missing = "edge:build_codegen:9999999999999999"
    result = compute_frontier(
        store,
        FrontierInput(observation_id="obs:test", support=[edge(missing), edge(missing)]),
    )
    assert len(result.diagnostics) == 1
    assert result.diagnostics[0].item == missing


def test_read_model_errors_propagate():
    class Broken(GraphReadModel):
        def list_artifacts(self):
            raise OSError("store unavailable")

        def list_entities(self):
            return []

        def list_correspondences(self):
            return []

        def list_build_edges(self):
            return []

    with pytest.raises(OSError, match="store unavailable"):
        compute_frontier(Broken(), FrontierInput(observation_id="obs:test"))


def test_in_memory_graph_replaces_rows_with_same_id():
    store = InMemoryGraph()
    store.save_build_edge(BuildEdge("e", "a", "b"))
    store.save_build_edge(BuildEdge("e", "a", "c"))
    assert store.list_build_edges() == [BuildEdge("e", "a", "c")]