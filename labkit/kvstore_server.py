"""A versioned key-value store served over HTTP and backed by a transaction log."""

from __future__ import annotations

import json
import logging
import os
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional
from urllib.parse import parse_qs, urlsplit

from labkit.kvstore_api import (
    VersionedKeyValue,
    VersionedValue,
    parse_versioned_key_value,
    parse_versioned_key_values,
)
from labkit.transactionlog import FileTransactionLogger, TransactionLogError

log = logging.getLogger(__name__)

_JSON = "application/json"
_TEXT = "text/plain; charset=utf-8"


class VersionMismatch(Exception):
    """Raised when an update names a version other than the stored one."""


def _compact(obj: object) -> str:
    return json.dumps(obj, separators=(",", ":"))


def _split_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"address {address!r} has no port")
    try:
        return host, int(port)
    except ValueError:
        raise ValueError(f"address {address!r} has an invalid port") from None


class _HTTPServer(ThreadingHTTPServer):
    daemon_threads = True
    kv: "Server"


class _Handler(BaseHTTPRequestHandler):
    server: _HTTPServer

    def _dispatch(self) -> None:
        url = urlsplit(self.path)
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length) if length > 0 else b""
        query = parse_qs(url.query, keep_blank_values=True)
        status, content_type, payload = self.server.kv._handle(self.command, url.path, query, body)
        self.send_response(status)
        if content_type:
            self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    do_GET = do_POST = do_PUT = do_DELETE = do_PATCH = _dispatch

    def log_message(self, format: str, *args: object) -> None:
        log.debug("%s - %s", self.address_string(), format % args)


class Server:
    """An in-memory versioned key-value store with a file transaction log."""

    def __init__(self, log_file: str | os.PathLike) -> None:
        self._store: dict[str, VersionedValue] = {}
        self._lock = threading.RLock()
        self._http: Optional[_HTTPServer] = None
        self._http_lock = threading.Lock()
        self.server_address: Optional[tuple[str, int]] = None
        log.info("Using transaction log in %r", str(log_file))
        try:
            self._logger = FileTransactionLogger(log_file)
        except OSError as exc:
            raise TransactionLogError(f"could not open transaction log: {exc}") from exc

    def reset(self) -> None:
        """Remove all key-value pairs."""
        with self._lock:
            self._store = {}

    def get(self, key: str) -> VersionedValue:
        """Return the value stored for ``key``, or an empty value at version 0."""
        with self._lock:
            return self._store.get(key, VersionedValue())

    def put(self, key: str, value: VersionedValue) -> None:
        """Store ``value`` under ``key``.

        A new key starts at version 1; an unchanged value is left alone; otherwise
        the given version must match the stored one and the version is increased.
        """
        with self._lock:
            current = self._store.get(key)
            if current is None:
                self._store[key] = VersionedValue(value.value, 1)
                return
            if current.value == value.value:
                return
            if current.version != value.version:
                raise VersionMismatch(
                    f"put: version mismatch: {current.version} != {value.version}"
                )
            self._store[key] = VersionedValue(value.value, current.version + 1)

    def list(self) -> list[VersionedKeyValue]:
        """Return all stored key-value pairs."""
        with self._lock:
            return [VersionedKeyValue(k, v.value, v.version) for k, v in self._store.items()]

    def transaction(self, ops: list[VersionedKeyValue]) -> None:
        """Apply all operations at once, or none if any version of an existing key mismatches."""
        with self._lock:
            for op in ops:
                current = self._store.get(op.key)
                if current is not None and current.version != op.version:
                    raise VersionMismatch(
                        f"transaction: version mismatch on op {op.key!r}: "
                        f"{current.version} != {op.version}"
                    )
            for op in ops:
                current = self._store.get(op.key)
                version = 1 if current is None else current.version + 1
                self._store[op.key] = VersionedValue(op.value, version)

    def replay_log(self) -> None:
        """Rebuild the store from the records of the transaction log."""
        try:
            events = self._logger.read_events()
        except TransactionLogError as exc:
            raise TransactionLogError(f"could not read transaction log: {exc}") from exc

        for event in events:
            if event.type == "put":
                try:
                    vkv = parse_versioned_key_value(event.value)
                except ValueError as exc:
                    log.warning("error decoding transaction log value %r: %s", event.value, exc)
                    continue
                try:
                    self.put(vkv.key, vkv.versioned_value)
                except VersionMismatch as exc:
                    log.warning("error registering %r from transaction log value: %s", vkv, exc)
            elif event.type == "transaction":
                try:
                    ops = parse_versioned_key_values(event.value)
                except ValueError as exc:
                    log.warning("error decoding transaction log value %r: %s", event.value, exc)
                    continue
                try:
                    self.transaction(ops)
                except VersionMismatch as exc:
                    log.warning("error registering %r from transaction log value: %s", ops, exc)
            elif event.type == "reset":
                self.reset()
            else:
                log.warning("unknown key in transaction log")

    def run(self, address: str, stop: threading.Event) -> None:
        """Replay the log, start logging and serve HTTP on ``address`` until ``stop`` is set."""
        host, port = _split_address(address)
        self.replay_log()
        self._logger.run(stop)

        log.info("Starting HTTP server at %s", address)
        httpd = _HTTPServer((host, port), _Handler)
        httpd.kv = self
        with self._http_lock:
            self._http = httpd
        self.server_address = httpd.server_address[:2]
        threading.Thread(target=httpd.serve_forever, daemon=True).start()

        def watch() -> None:
            stop.wait()
            self._shutdown_http()

        threading.Thread(target=watch, daemon=True).start()

    def close(self) -> None:
        """Stop serving HTTP and close the transaction log."""
        self._shutdown_http()
        self._logger.close()

    def _shutdown_http(self) -> None:
        with self._http_lock:
            httpd, self._http = self._http, None
        if httpd is not None:
            httpd.shutdown()
            httpd.server_close()

    def _handle(
        self, method: str, path: str, query: dict[str, list[str]], body: bytes
    ) -> tuple[int, Optional[str], bytes]:
        if path == "/api/reset":
            log.info("reset")
            self.reset()
            self._logger.write("reset", '""')
            return 200, None, b""

        if path == "/api/get":
            if method != "GET":
                return 405, None, b""
            if "id" not in query:
                return 400, _TEXT, b"No transaction id supplied as query parameter\n"
            key = query["id"][0]
            log.info("get: key=%s", key)
            return 200, _JSON, (_compact(self.get(key).to_dict()) + "\n").encode()

        if path == "/api/put":
            try:
                vkv = parse_versioned_key_value(body)
            except ValueError as exc:
                return 400, _TEXT, f"{exc}\n".encode()
            if vkv.key == "":
                return 400, None, b""
            log.info("put: key=%s, value=%s, version=%d", vkv.key, vkv.value, vkv.version)
            try:
                self.put(vkv.key, vkv.versioned_value)
            except VersionMismatch:
                return 428, None, b""
            self._logger.write("put", _compact(vkv.to_dict()))
            return 200, None, b""

        if path == "/api/list":
            log.info("list")
            items = [item.to_dict() for item in self.list()]
            return 200, _JSON, (_compact(items) + "\n").encode()

        if path == "/api/transaction":
            try:
                ops = parse_versioned_key_values(body)
            except ValueError as exc:
                return 400, _TEXT, f"{exc}\n".encode()
            log.info("transaction: ops=%d", len(ops))
            try:
                self.transaction(ops)
            except VersionMismatch:
                return 428, None, b""
            self._logger.write("transaction", _compact([op.to_dict() for op in ops]))
            return 200, None, b""

        return 404, _TEXT, b"404 page not found\n"