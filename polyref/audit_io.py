"""Append-only NDJSON writer and streaming reader for audit events."""

from __future__ import annotations

import os
from typing import BinaryIO

from polyref.audit_event import AuditEvent, AuditEventError

AUDIT_LINE_MAX_BYTES = 1024 * 1024
"""Hard cap on the byte length of one audit line, newline included."""

_DRAIN_CHUNK = 64 * 1024


class AuditReadError(Exception):
    """An audit log could not be read; I/O failures raise this class directly."""


class BadJsonError(AuditReadError):
    """A line is not valid UTF-8 JSON describing an audit event."""

    def __init__(self, line_no: int, detail: str) -> None:
        super().__init__(f"audit line {line_no}: malformed JSON: {detail}")
        self.line_no = line_no
        self.detail = detail


class InvalidAuditLineError(AuditReadError):
    """A line parsed but failed schema validation."""

    def __init__(self, line_no: int, source: AuditEventError) -> None:
        super().__init__(f"audit line {line_no}: schema validation failed: {source}")
        self.line_no = line_no
        self.source = source


class LineTooLongError(AuditReadError):
    """A line exceeded :data:`AUDIT_LINE_MAX_BYTES`."""

    def __init__(self, line_no: int) -> None:
        super().__init__(
            f"audit line {line_no}: line exceeds {AUDIT_LINE_MAX_BYTES} bytes"
        )
        self.line_no = line_no


class AuditReader:
    """Iterate over the events of an NDJSON audit log.

    Each line is length-capped, decoded as UTF-8, parsed and validated.
    A bad line raises from ``next()``; iteration may continue afterwards
    with the following line. Blank lines are skipped.
    """

    def __init__(self, stream: BinaryIO, *, _owns_stream: bool = False) -> None:
        self._stream = stream
        self._owns_stream = _owns_stream
        self._line_no = 0

    @classmethod
    def open(cls, path: str | os.PathLike[str]) -> AuditReader:
        """Open an existing audit log for reading."""
        try:
            stream = open(path, "rb")
        except OSError as error:
            raise AuditReadError(f"audit read io error: {error}") from error
        return cls(stream, _owns_stream=True)

    def __iter__(self) -> AuditReader:
        return self

    def __next__(self) -> AuditEvent:
        while True:
            self._line_no += 1
            raw = self._readline(AUDIT_LINE_MAX_BYTES + 1)
            if not raw:
                raise StopIteration
            if len(raw) > AUDIT_LINE_MAX_BYTES:
                if not raw.endswith(b"\n"):
                    self._drain_to_next_line()
                raise LineTooLongError(self._line_no)
            try:
                text = raw.decode("utf-8")
            except UnicodeDecodeError:
                raise BadJsonError(self._line_no, "line is not valid UTF-8") from None
            saw_eof = not raw.endswith(b"\n")
            trimmed = text.rstrip("\n").rstrip("\r")
            if not trimmed:
                if saw_eof:
                    raise StopIteration
                continue
            return self._parse_line(trimmed)

    def _readline(self, limit: int) -> bytes:
        try:
            return self._stream.readline(limit)
        except OSError as error:
            raise AuditReadError(f"audit read io error: {error}") from error

    def _drain_to_next_line(self) -> None:
        while True:
            chunk = self._readline(_DRAIN_CHUNK)
            if not chunk or chunk.endswith(b"\n"):
                return

    def _parse_line(self, line: str) -> AuditEvent:
        try:
            event = AuditEvent.from_json(line)
        except ValueError as error:
            raise BadJsonError(self._line_no, str(error)) from error
        try:
            event.validate()
        except AuditEventError as error:
            raise InvalidAuditLineError(self._line_no, error) from error
        return event

    def close(self) -> None:
        """Close the underlying file if this reader opened it."""
        if self._owns_stream:
            self._stream.close()

    def __enter__(self) -> AuditReader:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


class AuditWriteError(Exception):
    """An event could not be written to the audit log.

    ``source`` holds the validation error when the event itself was invalid.
    """

    def __init__(self, message: str, source: Exception | None = None) -> None:
        super().__init__(message)
        self.source = source


class AuditWriter:
    """Append-only audit log writer that flushes after every event."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    @classmethod
    def open(cls, path: str | os.PathLike[str]) -> AuditWriter:
        """Open ``path`` for appending, creating it if missing."""
        try:
            stream = open(path, "ab")
        except OSError as error:
            raise AuditWriteError(f"audit io error: {error}", error) from error
        return cls(stream)

    def append(self, event: AuditEvent) -> None:
        """Validate ``event``, write it as one LF-terminated JSON line and flush."""
        try:
            event.validate()
        except AuditEventError as error:
            raise AuditWriteError(f"audit event invalid: {error}", error) from error
        try:
            line = event.to_json()
        except (TypeError, ValueError) as error:
            raise AuditWriteError(f"audit serialization error: {error}", error) from error
        if "\n" in line:
            raise AuditWriteError("audit serialization produced a multiline payload")
        if self._stream.closed:
            raise AuditWriteError("audit writer is closed")
        try:
            self._stream.write(line.encode("utf-8") + b"\n")
            self._stream.flush()
        except OSError as error:
            raise AuditWriteError(f"audit io error: {error}", error) from error

    def flush(self) -> None:
        """Flush buffered bytes to the operating system."""
        if self._stream.closed:
            raise AuditWriteError("audit writer is closed")
        try:
            self._stream.flush()
        except OSError as error:
            raise AuditWriteError(f"audit io error: {error}", error) from error

    def close(self) -> None:
        """Flush and close the log file."""
        if not self._stream.closed:
            self._stream.close()

    def __enter__(self) -> AuditWriter:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()