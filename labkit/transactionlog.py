"""Transaction logs: an append-only record of events that can be replayed."""

from __future__ import annotations

import abc
import logging
import os
import queue
import threading
from dataclasses import dataclass
from typing import Optional

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    """A record written to, or read from, the transaction log."""

    # Unique record id, in monotonically increasing order.
    sequence: int
    # The type of the event being recorded.
    type: str
    # The value put into the transaction log.
    value: str


class TransactionLogError(Exception):
    """Raised when the transaction log cannot be written or replayed."""


class TransactionLogger(abc.ABC):
    """Interface of transaction log implementations."""

    @abc.abstractmethod
    def write(self, key: str, value: str) -> None:
        """Store a key-value pair in the transaction log."""

    @abc.abstractmethod
    def run(self, stop: threading.Event) -> None:
        """Start recording events in the background until ``stop`` is set."""

    @abc.abstractmethod
    def read_events(self) -> list[Event]:
        """Replay all events stored in the log."""

    @abc.abstractmethod
    def errors(self) -> "queue.Queue[Exception]":
        """Return the queue on which the background writer reports errors."""


class FileTransactionLogger(TransactionLogger):
    """A transaction logger that stores tab-separated records in a file."""

    _POLL = 0.05

    def __init__(self, filename: str | os.PathLike) -> None:
        log.info("Opening/creating transaction log in file %s", filename)
        fd = os.open(filename, os.O_RDWR | os.O_APPEND | os.O_CREAT, 0o755)
        self._file = os.fdopen(fd, "r+", encoding="utf-8", newline="\n")
        self._last_sequence = 0
        self._events: Optional[queue.Queue[Event]] = None
        self._errors: queue.Queue[Exception] = queue.Queue(maxsize=1)
        self._lock = threading.Lock()

    def __enter__(self) -> "FileTransactionLogger":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def write(self, key: str, value: str) -> None:
        if self._events is None:
            raise TransactionLogError("transaction log is not running")
        log.info("Writing record: key=%s, value=%s", key, value)
        self._events.put(Event(0, key, value))

    def errors(self) -> "queue.Queue[Exception]":
        return self._errors

    def run(self, stop: threading.Event) -> None:
        events: queue.Queue[Event] = queue.Queue(maxsize=16)
        self._events = events
        threading.Thread(target=self._serve, args=(events, stop), daemon=True).start()

    def _serve(self, events: "queue.Queue[Event]", stop: threading.Event) -> None:
        while not stop.is_set():
            try:
                event = events.get(timeout=self._POLL)
            except queue.Empty:
                continue
            try:
                with self._lock:
                    self._last_sequence += 1
                    self._file.write(f"{self._last_sequence}\t{event.type}\t{event.value}\n")
                    self._file.flush()
            except (OSError, ValueError) as exc:
                self._errors.put(exc)
                return
        log.info("Closing transaction log")
        self.close()

    def read_events(self) -> list[Event]:
        events: list[Event] = []
        with self._lock:
            try:
                self._file.seek(0)
                lines = self._file.read().split("\n")
            except (OSError, ValueError) as exc:
                raise TransactionLogError(f"transaction log read failure: {exc}") from exc
            if lines and lines[-1] == "":
                lines.pop()
            for line in lines:
                event = self._parse(line)
                if self._last_sequence >= event.sequence:
                    raise TransactionLogError("transaction numbers out of sequence")
                self._last_sequence = event.sequence
                events.append(event)
                log.debug("Read-events: new event %r", event)
        return events

    @staticmethod
    def _parse(line: str) -> Event:
        fields = line.split()
        if len(fields) < 3:
            raise TransactionLogError(f"input parse error: malformed record {line!r}")
        if not fields[0].isdigit():
            raise TransactionLogError(f"input parse error: bad sequence number {fields[0]!r}")
        return Event(int(fields[0]), fields[1], fields[2])

    def close(self) -> None:
        """Close the file backing the log."""
        with self._lock:
            if not self._file.closed:
                self._file.close()