"""Memoization keys for extractor and checker results.

Both keys are the SHA-256 of a canonical JSON document (sorted keys,
compact separators, UTF-8), so they are stable across runs and machines.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

from polyref.blobkey import BlobKey

_U32_MAX = 2**32 - 1


def _canonical_key(document: dict[str, Any]) -> BlobKey:
    try:
        text = json.dumps(
            document,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as error:
        raise ValueError(f"memo inputs cannot be canonicalized: {error}") from error
    return BlobKey.from_bytes(text.encode("utf-8"))


def extractor_memo_key(
    content_hash: BlobKey,
    extractor_id: str,
    extractor_version: str,
    options: Any,
) -> BlobKey:
    """Key for an extractor run over the given content with the given options."""
    return _canonical_key(
        {
            "content_hash": content_hash.to_hex(),
            "extractor_id": extractor_id,
            "extractor_version": extractor_version,
            "options": options,
        }
    )


def checker_memo_key(
    plugin_version: str,
    contract_id: str,
    endpoint_ids: Iterable[Any],
    evidence_inputs_hash: BlobKey,
    deadline_ms: int,
) -> BlobKey:
    """Key for a checker call; endpoint ids are sorted so their order does not matter."""
    if isinstance(deadline_ms, bool) or not isinstance(deadline_ms, int):
        raise ValueError("deadline_ms must be an integer")
    if not 0 <= deadline_ms <= _U32_MAX:
        raise ValueError(f"deadline_ms out of range: {deadline_ms}")
    return _canonical_key(
        {
            "plugin_version": plugin_version,
            "contract_id": contract_id,
            "endpoint_ids": sorted(str(endpoint) for endpoint in endpoint_ids),
            "evidence_inputs_hash": evidence_inputs_hash.to_hex(),
            "deadline_ms": deadline_ms,
        }
    )