"""Tests for the Transloadit client."""

import hashlib
import hmac
import json
import threading
from datetime import datetime, timezone

import httpx
import pytest

from transloadify.client import TransloaditClient
from transloadify.config import ClientConfig
from transloadify.exceptions import AssemblyError, ClientError, DownloadError
from transloadify.models import AssemblyInfo


def make_client(handler, **config):
    config.setdefault("poll_interval", 0.01)
    cfg = ClientConfig(auth_key="key", auth_secret="secret", **config)
    return TransloaditClient(cfg, transport=httpx.MockTransport(handler))


class TestSigning:
    """Tests for request parameters and signatures."""

    def test_params_with_template_id(self, fake_api):
        client = fake_api.client()
        params = client.build_params(template_id="abc123")
        assert params["template_id"] == "abc123"
        assert "steps" not in params
        assert params["auth"]["key"] == "key"

    def test_params_with_steps(self, fake_api):
        client = fake_api.client()
        params = client.build_params(steps={"a": {"robot": "/image/resize"}})
        assert params["steps"] == {"a": {"robot": "/image/resize"}}
        assert "template_id" not in params

    def test_template_id_preferred_over_steps(self, fake_api):
        client = fake_api.client()
        params = client.build_params(template_id="abc", steps={"a": {}})
        assert params["template_id"] == "abc"
        assert "steps" not in params

    def test_expires_is_in_the_future(self, fake_api):
        client = fake_api.client()
        expires = client.build_params(template_id="abc")["auth"]["expires"]
        parsed = datetime.strptime(expires, "%Y/%m/%d %H:%M:%S+00:00").replace(tzinfo=timezone.utc)
        assert parsed > datetime.now(timezone.utc)

    def test_signature_matches_hmac(self, fake_api):
        client = fake_api.client()
        payload, signature = client.sign({"auth": {"key": "key"}})
        expected = hmac.new(b"secret", payload.encode(), hashlib.sha384).hexdigest()
        assert signature == f"sha384:{expected}"
        assert json.loads(payload) == {"auth": {"key": "key"}}


class TestAssemblies:
    """Tests for creating and waiting on assemblies."""

    def test_create_assembly_uploads_file(self, fake_api, tmp_path):
        source = tmp_path / "clip.mp4"
        source.write_bytes(b"video")
        client = fake_api.client()

        info = client.create_assembly(source, template_id="abc123")

        assert info.assembly_id == "as1"
        assert info.ok == "ASSEMBLY_EXECUTING"
        request = fake_api.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/assemblies"
        assert fake_api.params_of(request)["template_id"] == "abc123"
        assert b"sha384:" in request.content
        assert b"video" in request.content

    def test_create_assembly_sends_steps(self, fake_api, tmp_path):
        source = tmp_path / "a.jpg"
        source.write_bytes(b"img")
        steps = {"resized": {"robot": "/image/resize", "width": 10}}

        fake_api.client().create_assembly(source, steps=steps)

        assert fake_api.params_of(fake_api.requests[0])["steps"] == steps

    def test_create_assembly_needs_template(self, fake_api, tmp_path):
        source = tmp_path / "a.jpg"
        source.write_bytes(b"img")
        with pytest.raises(ClientError, match="template id or steps"):
            fake_api.client().create_assembly(source)

    def test_create_assembly_rejected(self, make_fake_api, tmp_path):
        source = tmp_path / "a.jpg"
        source.write_bytes(b"img")
        fake = make_fake_api(create_error="INVALID_SIGNATURE")
        with pytest.raises(AssemblyError) as exc_info:
            fake.client().create_assembly(source, template_id="abc")
        assert exc_info.value.error == "INVALID_SIGNATURE"
        assert "rejected" in str(exc_info.value)

    def test_wait_for_assembly_polls_until_completed(self, fake_api, tmp_path):
        source = tmp_path / "a.jpg"
        source.write_bytes(b"img")
        client = fake_api.client()

        info = client.wait_for_assembly(client.create_assembly(source, template_id="abc"))

        assert info.is_completed
        assert info.uploads[0].name == "a.jpg"
        assert info.results["resized"][0].url.endswith("/results/as1/resized/a.jpg")

    def test_wait_for_assembly_raises_on_error(self, make_fake_api, tmp_path):
        source = tmp_path / "a.jpg"
        source.write_bytes(b"img")
        fake = make_fake_api(final_state="ERR_ROBOT")
        client = fake.client()

        with pytest.raises(AssemblyError, match="ERR_ROBOT: robot failed"):
            client.wait_for_assembly(client.create_assembly(source, template_id="abc"))

    def test_wait_for_assembly_raises_on_cancel(self, make_fake_api, tmp_path):
        source = tmp_path / "a.jpg"
        source.write_bytes(b"img")
        fake = make_fake_api(final_state="ASSEMBLY_CANCELED")
        client = fake.client()

        with pytest.raises(AssemblyError, match="ASSEMBLY_CANCELED"):
            client.wait_for_assembly(client.create_assembly(source, template_id="abc"))

    def test_wait_for_assembly_gives_up_after_timeout(self, make_fake_api, tmp_path):
        source = tmp_path / "a.jpg"
        source.write_bytes(b"img")
        fake = make_fake_api(final_state="ASSEMBLY_EXECUTING")
        client = fake.client(assembly_timeout=0.1)

        with pytest.raises(ClientError, match="did not finish within"):
            client.wait_for_assembly(client.create_assembly(source, template_id="abc"))

    def test_wait_for_assembly_stops_when_asked(self, make_fake_api, tmp_path):
        source = tmp_path / "a.jpg"
        source.write_bytes(b"img")
        fake = make_fake_api(final_state="ASSEMBLY_EXECUTING")
        client = fake.client()
        stop = threading.Event()
        stop.set()

        with pytest.raises(ClientError, match="Stopped waiting"):
            client.wait_for_assembly(client.create_assembly(source, template_id="abc"), stop=stop)
        assert [r.method for r in fake.requests] == ["POST"]

    def test_completed_assembly_is_not_polled(self, fake_api):
        info = AssemblyInfo(assembly_id="x", assembly_url="https://example.com/x", ok="ASSEMBLY_COMPLETED")
        assert fake_api.client().wait_for_assembly(info) is info
        assert fake_api.requests == []

    def test_transport_error_is_wrapped(self, tmp_path):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        source = tmp_path / "a.jpg"
        source.write_bytes(b"img")
        with pytest.raises(ClientError, match="connection refused"):
            make_client(handler).create_assembly(source, template_id="abc")

    def test_non_json_error_response(self):
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        with pytest.raises(ClientError, match="HTTP 502"):
            make_client(handler).get_assembly("https://api2.transloadit.com/assemblies/x")


class TestDownload:
    """Tests for fetching results."""

    def test_download_writes_file(self, fake_api, tmp_path):
        dest = tmp_path / "out.jpg"
        fake_api.client().download("https://api2.transloadit.com/results/as1/resized/a.jpg", dest)
        assert dest.read_bytes() == b"resized:a.jpg"
        assert not (tmp_path / "out.jpg.tmp").exists()

    def test_download_failure(self, tmp_path):
        def handler(request):
            return httpx.Response(404)

        dest = tmp_path / "out.jpg"
        with pytest.raises(DownloadError):
            make_client(handler).download("https://example.com/missing.jpg", dest)
        assert not dest.exists()
        assert not (tmp_path / "out.jpg.tmp").exists()

    def test_write_failure_removes_partial_file(self, tmp_path):
        class BrokenStream(httpx.SyncByteStream):
            def __iter__(self):
                yield b"partial"
                raise OSError("No space left on device")

        def handler(request):
            return httpx.Response(200, stream=BrokenStream())

        dest = tmp_path / "out.jpg"
        with pytest.raises(DownloadError, match="No space left"):
            make_client(handler).download("https://example.com/big.jpg", dest)
        assert not dest.exists()
        assert not (tmp_path / "out.jpg.tmp").exists()


class TestWatchFactory:
    """Tests for TransloaditClient.watch."""

    def test_watch_returns_unstarted_watcher(self, fake_api, tmp_path):
        from transloadify.config import WatchOptions
        from transloadify.watcher import Watcher

        client = fake_api.client()
        watcher = client.watch(WatchOptions(input=tmp_path, output=tmp_path / "out", template_id="abc"))
        assert isinstance(watcher, Watcher)
        assert watcher.client is client
        assert not watcher.running
