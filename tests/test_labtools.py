import json
import socket
import subprocess
import sys
import threading
import urllib.error
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from labkit.labtools import request_api, run_command


class _EchoHandler(BaseHTTPRequestHandler):
    def _reply(self):
        if self.path == "/missing":
            self.send_response(404)
            self.send_header("Content-Length", "0")
            self.end_headers()
            return
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length).decode() if length else ""
        payload = json.dumps({"method": self.command, "path": self.path, "body": body}).encode()
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    do_GET = do_POST = do_DELETE = _reply

    def log_message(self, format, *args):
        pass


@pytest.fixture
def echo_server(monkeypatch):
    httpd = ThreadingHTTPServer(("127.0.0.1", 0), _EchoHandler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    monkeypatch.setenv("EXTERNAL_IP", "127.0.0.1")
    monkeypatch.setenv("EXTERNAL_PORT", str(httpd.server_address[1]))
    yield httpd
    httpd.shutdown()
    httpd.server_close()


def _json(res):
    with res:
        return res.status, json.loads(res.read())


def test_get_request(echo_server):
    status, data = _json(request_api("api/accounts", "GET", ""))
    assert status == 200
    assert data == {"method": "GET", "path": "/api/accounts", "body": ""}


def test_post_empty_body_sends_default(echo_server):
    status, data = _json(request_api("api/transfer", "POST", ""))
    assert status == 200
    assert data["method"] == "POST"
    assert data["body"] == '{"sender":"c","receiver":"a", "amount": 4}'


def test_post_with_body(echo_server):
    body = '{"sender":"a", "receiver":"b", "amount": 4}'
    status, data = _json(request_api("api/transfer", "POST", body))
    assert status == 200
    assert data["body"] == body


def test_error_status_is_returned(echo_server):
    res = request_api("missing", "GET", "")
    with res:
        assert res.status == 404


def test_connection_refused(monkeypatch):
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    monkeypatch.setenv("EXTERNAL_IP", "127.0.0.1")
    monkeypatch.setenv("EXTERNAL_PORT", str(port))
    with pytest.raises(urllib.error.URLError):
        request_api("api/reset", "GET", "")


def test_run_command_captures_output():
    out, err = run_command(
        sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr)"
    )
    assert out.strip() == "out"
    assert err.strip() == "err"


def test_run_command_failure():
    with pytest.raises(subprocess.CalledProcessError) as info:
        run_command(sys.executable, "-c", "import sys; sys.exit(3)")
    assert info.value.returncode == 3


def test_run_command_not_found():
    with pytest.raises(FileNotFoundError, match="in PATH"):
        run_command("no-such-command-for-labkit-tests")