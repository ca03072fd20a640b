"""Blob cache, memo keys, NDJSON audit log, affected-frontier closure and coverage-risk classification."""

__version__ = "0.1.0"