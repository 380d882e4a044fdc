"""Helpers for exercising lab services: HTTP requests and external commands."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import urllib.error
import urllib.request
from typing import Any

log = logging.getLogger(__name__)

DEFAULT_POST_BODY = '{"sender":"c","receiver":"a", "amount": 4}'


def request_api(api: str, method: str = "GET", body: str = "") -> Any:
    """Send ``method`` to ``api`` on the service under test and return the response.

    The host and port come from EXTERNAL_IP and EXTERNAL_PORT (default
    localhost:8080). A POST with an empty body sends a default transfer. Error
    statuses are returned as responses; connection failures raise URLError.
    """
    addr = os.environ.get("EXTERNAL_IP") or "localhost"
    port = os.environ.get("EXTERNAL_PORT") or "8080"
    uri = f"http://{addr}:{port}/{api}"

    data = None
    if method == "POST":
        data = (body or DEFAULT_POST_BODY).encode("utf-8")
    request = urllib.request.Request(uri, data=data, method=method)
    try:
        return urllib.request.urlopen(request)
    except urllib.error.HTTPError as exc:
        return exc


def run_command(cmd: str, *args: str) -> tuple[str, str]:
    """Run ``cmd`` found on PATH with ``args`` and return its stdout and stderr.

    Raises FileNotFoundError if the command is not found and
    subprocess.CalledProcessError if it exits with a failure status.
    """
    path = shutil.which(cmd)
    if path is None:
        raise FileNotFoundError(f"find command {cmd!r} in PATH")

    log.info("Executing:\t%s %s", cmd, " ".join(args))
    completed = subprocess.run([path, *args], capture_output=True, text=True)
    log.info("StdOut:\t%s", completed.stdout)
    log.info("StdErr:\t%s", completed.stderr)
    if completed.returncode != 0:
        raise subprocess.CalledProcessError(
            completed.returncode, [cmd, *args], completed.stdout, completed.stderr
        )
    return completed.stdout, completed.stderr