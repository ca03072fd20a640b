# polyref

This package provides building blocks for checking that a refactoring across
languages and build steps keeps the observable behaviour the same. It has no
third-party dependencies.

| Module | What it provides |
| --- | --- |
| `polyref.blobkey` | `BlobKey`, a SHA-256 content key with a canonical lowercase hex form |
| `polyref.cache_stats` | `CacheStats` snapshots and thread-safe `CacheCounters` |
| `polyref.memo` | `extractor_memo_key` and `checker_memo_key`, deterministic cache keys |
| `polyref.blobstore` | `BlobStore` interface and `FsBlobStore` on disk |
| `polyref.audit_event` | `AuditEvent` and the closed `AuditEventTag` set |
| `polyref.audit_io` | `AuditWriter`, an append-only NDJSON writer, and `AuditReader`, a streaming reader |
| `polyref.frontier` | `compute_frontier` over an in-memory graph |
| `polyref.coverage_risk` | `classify_coverage_risk`, fail-closed risk classification |

## Installation

```
pip install .
```

## Blob store

```python
from polyref.blobstore import FsBlobStore

store = FsBlobStore.open(".polyref/cache")
key = store.put(b"hello")
assert store.get(key) == b"hello"
print(key.to_hex(), store.stats())
```

Blobs are stored at `<root>/blobs/sha256/<first two hex chars>/<hex>`.

- **Writing.** Content goes to a temporary file in the shard directory first. That file is then moved into place without overwriting an existing blob. Storing content that is already present writes nothing and does not count as a write.
- **Counters.** `get` counts a hit or a miss. `has` changes no counter.
- **Keys.** `BlobKey.parse` accepts only 64 lowercase hex characters.

## Memo keys

Both memo keys are the SHA-256 of a canonical JSON document. The document has sorted keys and compact separators.

- **`extractor_memo_key`** hashes the content hash, the extractor id, the extractor version and the options.
- **`checker_memo_key`** sorts the endpoint ids before hashing, so the order of the ids does not matter. `deadline_ms` must be an integer from 0 to 2³²−1.

## Audit log

```python
from polyref.audit_event import AuditEvent, AuditEventTag
from polyref.audit_io import AuditReader, AuditWriter

event = AuditEvent.create(
    "2026-05-21T10:00:00Z", "run-001", "extraction",
    AuditEventTag.REPO_LOADED, "loader", "a" * 64, [],
)
with AuditWriter.open("audit.ndjson") as writer:
    writer.append(event)

with AuditReader.open("audit.ndjson") as reader:
    for read_back in reader:
        print(read_back.tag.as_tag())
```

### Validation

`AuditEvent.validate` enforces these rules:

- `ts` must not be empty.
- `report_id` and `actor` must be non-empty and at most 256 bytes.
- `stage` must be non-empty and at most 64 bytes.
- `payload_hash` must be exactly 64 lowercase hex characters.

A failed check raises one of these subclasses of `AuditEventError`:

- `EmptyFieldError`
- `FieldTooLongError`
- `BadPayloadHashError`

`AuditEvent.from_dict` rejects unknown fields and unknown tags.

### Writing

`AuditWriter.append` checks the event before writing. It then writes the event as one LF-terminated line and flushes. Failures raise `AuditWriteError`.

### Reading

`AuditReader` skips blank lines and caps each line at 1 MiB (`AUDIT_LINE_MAX_BYTES`). A bad line raises one of these errors, each with its `line_no`:

- `LineTooLongError`
- `BadJsonError`, for bad JSON or bytes that are not UTF-8
- `InvalidAuditLineError`, when schema validation fails

After any of these errors you can keep iterating from the next line.

## Affected frontier

```python
from polyref.frontier import (
    Artifact, BuildEdge, FrontierInput, InMemoryGraph,
    SupportKind, SupportRef, compute_frontier,
)

graph = InMemoryGraph()
for artifact_id in ("spec.yaml", "client.ts", "bundle.js"):
    graph.save_artifact(Artifact(artifact_id))
graph.save_build_edge(BuildEdge("edge:ab", "spec.yaml", "client.ts"))
graph.save_build_edge(BuildEdge("edge:bc", "client.ts", "bundle.js"))

result = compute_frontier(graph, FrontierInput(
    observation_id="obs:test",
    edited_artifacts={"spec.yaml"},
    support=[SupportRef(SupportKind.EDGE, "edge:bc")],
))
for entry in result.entries:
    print(entry.item.id, [reason.name for reason in entry.reasons])
```

A correspondence or build edge from the support enters the frontier in either of two cases:

- One of its endpoints is touched, either by an edited artifact or by the migration map.
- It can be reached from the touched entities through the graph.

A build edge can also enter without being in the support. This happens when it is forward-reachable from an edited artifact and leads towards a support element.

Entries are sorted, with correspondences before build edges. Each entry carries its sorted reasons.

Diagnostics are returned sorted and deduplicated. `MISSING_SUPPORT` marks support that is not in the graph. `MISSING_GRAPH_ENDPOINT` marks rows that point at absent artifacts or entities.

`InMemoryGraph` is the only graph provided. Any subclass of `GraphReadModel` that implements the four `list_*` methods can be used instead.

## Coverage risk

```python
from polyref.coverage_risk import CoverageRiskInput, classify_coverage_risk

report = classify_coverage_risk(
    CoverageRiskInput(observation_id="obs:test", frontier=result)
)
print(report.is_blocked, report.risks)
```

`classify_coverage_risk` maps each input to an `UnknownReason`. The inputs are:

- frontier diagnostics
- observation registry diagnostics for the same observation
- migration-map diagnostics
- unsupported-feature notes

Risks are deduplicated and sorted.

Item strings that start with `/`, or that contain `/Users/` or `SECRET`, are replaced by `redacted`.

## What this package does not do

- It has no persistent graph store; graphs are held only in memory.
- It does not register observations.
- It does not build migration maps. The diagnostics that `classify_coverage_risk` reads are plain data classes that the caller fills in.
- It has no command-line tool.

## Running the tests

```
pip install .[test]
pytest
```