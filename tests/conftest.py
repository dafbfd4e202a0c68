"""Shared fixtures: a fake Transloadit API served through httpx.MockTransport."""

import json
import threading

import httpx
import pytest

from transloadify.client import TransloaditClient
from transloadify.config import ClientConfig


API = "https://api2.transloadit.com"


class FakeTransloadit:
    """
    Minimal stand-in for the assemblies API.

    Every upload creates an assembly that reports ASSEMBLY_EXECUTING on
    creation and ``final_state`` on the first status poll. Each assembly
    has one result per step in ``steps``.
    """

    def __init__(self, steps=("resized",), final_state="ASSEMBLY_COMPLETED", create_error=None):
        self.steps = list(steps)
        self.final_state = final_state
        self.create_error = create_error
        self.requests = []
        self.uploads = {}
        self._lock = threading.Lock()
        self._counter = 0

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self, **config) -> TransloaditClient:
        config.setdefault("poll_interval", 0.01)
        cfg = ClientConfig(auth_key="key", auth_secret="secret", **config)
        return TransloaditClient(cfg, transport=self.transport())

    def _status(self, assembly_id: str, ok: str) -> dict:
        name = self.uploads[assembly_id]
        data = {
            "ok": ok,
            "assembly_id": assembly_id,
            "assembly_ssl_url": f"{API}/assemblies/{assembly_id}",
            "uploads": [{"name": name, "basename": name.rsplit(".", 1)[0], "field": "file"}],
            "results": {},
        }
        if ok == "ASSEMBLY_COMPLETED":
            data["results"] = {
                step: [{"name": name, "ssl_url": f"{API}/results/{assembly_id}/{step}/{name}"}]
                for step in self.steps
            }
        return data

    def handle(self, request: httpx.Request) -> httpx.Response:
        request.read()
        with self._lock:
            self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path == "/assemblies":
            if self.create_error:
                return httpx.Response(400, json={"error": self.create_error, "message": "rejected"})
            with self._lock:
                self._counter += 1
                assembly_id = f"as{self._counter}"
            content = request.content
            marker = b'filename="'
            start = content.index(marker) + len(marker)
            name = content[start:content.index(b'"', start)].decode()
            self.uploads[assembly_id] = name
            return httpx.Response(200, json=self._status(assembly_id, "ASSEMBLY_EXECUTING"))

        if request.method == "GET" and path.startswith("/assemblies/"):
            assembly_id = path.rsplit("/", 1)[1]
            if self.final_state.startswith("ERR_"):
                return httpx.Response(200, json={
                    "error": self.final_state,
                    "message": "robot failed",
                    "assembly_id": assembly_id,
                })
            return httpx.Response(200, json=self._status(assembly_id, self.final_state))

        if request.method == "GET" and path.startswith("/results/"):
            _, _, assembly_id, step, name = path.split("/", 4)
            return httpx.Response(200, content=f"{step}:{name}".encode())

        return httpx.Response(404, json={"error": "NOT_FOUND"})

    def params_of(self, request: httpx.Request) -> dict:
        content = request.content
        marker = b'name="params"\r\n\r\n'
        start = content.index(marker) + len(marker)
        end = content.index(b"\r\n--", start)
        return json.loads(content[start:end])


@pytest.fixture
def fake_api():
    return FakeTransloadit()


@pytest.fixture
def make_fake_api():
    return FakeTransloadit
