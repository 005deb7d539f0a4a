"""A fake runner API server for tests of the controllers."""

from __future__ import annotations

import json
import re
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlsplit

_LIST_PATH = re.compile(r"^/(?:repos/[^/]+/[^/]+|orgs/[^/]+)/actions/runners$")
_ITEM_PATH = re.compile(r"^/(?:repos/[^/]+/[^/]+|orgs/[^/]+)/actions/runners/([^/]+)$")


class _RunnerServer:
    """A running HTTP server; close it or use it as a context manager."""

    def __init__(self, runners: "RunnersList") -> None:
        handler = _make_handler(runners)
        self._httpd = ThreadingHTTPServer(("127.0.0.1", 0), handler)
        self._thread = threading.Thread(target=self._httpd.serve_forever, daemon=True)
        self._thread.start()

    @property
    def url(self) -> str:
        host, port = self._httpd.server_address[:2]
        return f"http://{host}:{port}"

    def close(self) -> None:
        self._httpd.shutdown()
        self._httpd.server_close()
        self._thread.join()

    def __enter__(self) -> "_RunnerServer":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def _make_handler(runners: "RunnersList"):
    class Handler(BaseHTTPRequestHandler):
        def _dispatch(self) -> None:
            path = urlsplit(self.path).path
            if _LIST_PATH.match(path):
                status, body = runners.handle_list()
            elif match := _ITEM_PATH.match(path):
                status, body = runners.handle_remove(match.group(1)), b""
            else:
                status, body = 404, b"404 page not found\n"
            self.send_response(status)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        do_GET = do_POST = do_PUT = do_PATCH = do_DELETE = _dispatch

        def log_message(self, format, *args) -> None:  # noqa: A002
            pass

    return Handler


class RunnersList:
    """Registered runners as the fake API reports them."""

    def __init__(self) -> None:
        self.runners: list[dict] = []
        self._lock = threading.Lock()

    def add(self, runner: dict) -> None:
        """Add a runner unless one of the same name is already present."""
        with self._lock:
            if not any(r["name"] == runner["name"] for r in self.runners):
                self.runners.append(runner)

    def handle_list(self) -> tuple[int, bytes]:
        """Return the status and JSON body of a runner listing."""
        with self._lock:
            body = {"total_count": len(self.runners), "runners": list(self.runners)}
        return 200, json.dumps(body).encode()

    def handle_remove(self, runner_id) -> int:
        """Remove the runner with the given id; always answers 200."""
        with self._lock:
            self.runners = [
                r for r in self.runners
                if r.get("id") is None or str(r["id"]) != str(runner_id)
            ]
        return 200

    def sync(self, runner_names) -> None:
        """Replace the list with online runners of the given names, ids from 0."""
        with self._lock:
            self.runners = []
        for i, name in enumerate(runner_names):
            self.add(_runner(i, name, "online"))

    def add_offline(self, runner_names) -> None:
        """Add offline runners of the given names, ids from 1000."""
        for i, name in enumerate(runner_names):
            self.add(_runner(1000 + i, name, "offline"))

    def serve(self) -> _RunnerServer:
        """Start an HTTP server answering the runner list and remove endpoints."""
        return _RunnerServer(self)


def _runner(runner_id: int, name: str, status: str) -> dict:
    return {"id": runner_id, "name": name, "os": "linux", "status": status, "busy": False}