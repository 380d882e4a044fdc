"""Command that runs the key-value store server until interrupted."""

from __future__ import annotations

import argparse
import logging
import os
import signal
import tempfile
import threading
from typing import Optional, Sequence

from labkit.kvstore_server import Server
from labkit.transactionlog import TransactionLogError

log = logging.getLogger(__name__)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Serve the key-value store until SIGINT or SIGTERM; return the exit status."""
    parser = argparse.ArgumentParser(prog="kvstore", description="Versioned key-value store.")
    parser.add_argument("--listen", default=":8081", help="address to listen on")
    parser.add_argument(
        "--log-file",
        default=os.path.join(tempfile.gettempdir(), "translog.log"),
        help="transaction log file",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(filename)s:%(lineno)d: %(message)s",
    )

    stop = threading.Event()
    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, lambda *_: stop.set())

    try:
        try:
            server = Server(args.log_file)
        except TransactionLogError as exc:
            log.error("could not init server: %s", exc)
            return 1
        try:
            server.run(args.listen, stop)
        except (OSError, ValueError, TransactionLogError) as exc:
            log.error("could not start server: %s", exc)
            server.close()
            return 1
        while not stop.wait(0.1):
            pass
        server.close()
        return 0
    finally:
        for sig, handler in previous.items():
            if handler is not None:
                signal.signal(sig, handler)