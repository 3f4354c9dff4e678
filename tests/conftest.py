import json
import threading
import time
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest


class FakeJenkins:
    """Minimal Jenkins stand-in serving canned responses per path."""

    def __init__(self):
        self.responses: dict[str, tuple[int, bytes]] = {}
        self.hits: list[str] = []
        # seconds to stall before answering
        self.delay = 0.0
        self.lock = threading.Lock()
        fake = self

        class Handler(BaseHTTPRequestHandler):
            def do_GET(self):
                with fake.lock:
                    fake.hits.append(self.path)
                if fake.delay:
                    time.sleep(fake.delay)
                status, body = fake.responses.get(self.path, (404, b"not found"))
                self.send_response(status)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            def log_message(self, fmt, *args):
                return

        self.server = HTTPServer(("127.0.0.1", 0), Handler)
        self.url = f"http://127.0.0.1:{self.server.server_address[1]}"

    def set_computers(self, computers, status=200):
        body = json.dumps({"computer": computers}).encode("utf-8")
        self.responses["/computer/api/json"] = (status, body)

    def set_raw(self, body: bytes, status=200):
        self.responses["/computer/api/json"] = (status, body)


@pytest.fixture
def jenkins():
    fake = FakeJenkins()
    thread = threading.Thread(target=fake.server.serve_forever, daemon=True)
    thread.start()
    yield fake
    fake.server.shutdown()
    fake.server.server_close()


# Nothing listens on port 1, connections are refused immediately
UNREACHABLE = "http://127.0.0.1:1"


def node(name, offline=False, temporarily_offline=None):
    """NodeStatus literal for tests."""
    return {"name": name, "offline": offline, "temporarily_offline": temporarily_offline}
