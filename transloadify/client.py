"""Minimal Transloadit API client: create assemblies, wait for them, fetch results."""

import os
import hmac
import json
import time
import hashlib
import logging
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Tuple

import httpx

from .config import ClientConfig, WatchOptions
from .exceptions import AssemblyError, ClientError, DownloadError
from .models import AssemblyInfo


class TransloaditClient:
    """
    Talks to the Transloadit HTTP API.

    Every request is signed with the account secret. ``transport`` lets
    callers swap the network layer, e.g. for ``httpx.MockTransport``.
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.config = config
        self._http = httpx.Client(
            base_url=config.endpoint,
            timeout=config.timeout,
            transport=transport,
            follow_redirects=True,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "TransloaditClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ---- signing ----

    def _expires(self) -> str:
        expires = datetime.now(timezone.utc) + timedelta(seconds=self.config.expires_in)
        return expires.strftime("%Y/%m/%d %H:%M:%S+00:00")

    def build_params(
        self, template_id: Optional[str] = None, steps: Optional[dict] = None
    ) -> dict:
        params: dict = {
            "auth": {"key": self.config.auth_key, "expires": self._expires()},
        }
        if template_id:
            params["template_id"] = template_id
        elif steps:
            params["steps"] = steps
        return params

    def sign(self, params: dict) -> Tuple[str, str]:
        """Return (params_json, signature) for a request."""
        payload = json.dumps(params, separators=(",", ":"))
        digest = hmac.new(
            self.config.auth_secret.encode("utf-8"),
            payload.encode("utf-8"),
            hashlib.sha384,
        ).hexdigest()
        return payload, f"sha384:{digest}"

    # ---- requests ----

    def _json(self, response: httpx.Response) -> dict:
        try:
            data = response.json()
        except ValueError:
            raise ClientError(
                f"Transloadit returned HTTP {response.status_code} with a non-JSON body: {response.text[:200]}"
            )
        if not isinstance(data, dict):
            raise ClientError(f"Unexpected response from Transloadit: {data!r}")
        return data

    def _request(self, method: str, url: str, **kwargs) -> dict:
        try:
            response = self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise ClientError(f"Request to {url} failed: {e}")

        data = self._json(response)
        if data.get("error"):
            raise AssemblyError(
                data["error"],
                data.get("message") or data.get("reason") or "",
                data.get("assembly_ssl_url") or data.get("assembly_url") or "",
            )
        if response.is_error:
            raise ClientError(
                f"Transloadit returned HTTP {response.status_code} for {url}"
            )
        return data

    def create_assembly(
        self,
        path: Path,
        template_id: Optional[str] = None,
        steps: Optional[dict] = None,
    ) -> AssemblyInfo:
        """Upload ``path`` as a new assembly and return its initial status."""
        if not template_id and not steps:
            raise ClientError("An assembly needs a template id or steps")

        payload, signature = self.sign(self.build_params(template_id, steps))
        with open(path, "rb") as fh:
            data = self._request(
                "POST",
                "/assemblies",
                data={"params": payload, "signature": signature},
                files={"file": (path.name, fh)},
            )
        info = AssemblyInfo.from_dict(data)
        logging.debug(f"Created assembly {info.assembly_id} for {path}")
        return info

    def get_assembly(self, url: str) -> AssemblyInfo:
        return AssemblyInfo.from_dict(self._request("GET", url))

    def wait_for_assembly(
        self, assembly: AssemblyInfo, stop: Optional[threading.Event] = None
    ) -> AssemblyInfo:
        """Poll until the assembly completes; raise AssemblyError when it fails.

        Gives up with ClientError once ``assembly_timeout`` has passed or
        ``stop`` is set.
        """
        info = assembly
        stop = stop or threading.Event()
        deadline = time.monotonic() + self.config.assembly_timeout
        while True:
            if info.error:
                raise AssemblyError(info.error, info.message, info.assembly_url)
            if info.is_completed:
                return info
            if info.is_canceled:
                raise AssemblyError(info.ok or "ASSEMBLY_CANCELED", info.message, info.assembly_url)
            if not info.assembly_url:
                raise ClientError(f"Assembly {info.assembly_id} has no status URL")
            if not info.is_in_progress:
                logging.debug(f"Assembly {info.assembly_id} in state {info.ok}")

            if time.monotonic() >= deadline:
                raise ClientError(
                    f"Assembly {info.assembly_id} did not finish within {self.config.assembly_timeout}s"
                )
            if stop.wait(self.config.poll_interval):
                raise ClientError(f"Stopped waiting for assembly {info.assembly_id}")
            info = self.get_assembly(info.assembly_url)

    def download(self, url: str, dest: Path) -> Path:
        """Stream ``url`` into ``dest``; write via temp and replace."""
        tmp_path = dest.with_name(dest.name + ".tmp")
        try:
            with self._http.stream("GET", url) as response:
                response.raise_for_status()
                with open(tmp_path, "wb") as out:
                    for chunk in response.iter_bytes():
                        out.write(chunk)
            os.replace(tmp_path, dest)
        except (httpx.HTTPError, OSError) as e:
            tmp_path.unlink(missing_ok=True)
            raise DownloadError(f"Unable to download {url}: {e}")
        return dest

    # ---- watching ----

    def watch(self, options: WatchOptions):
        """Create a Watcher for ``options``; call ``start()`` on it to begin."""
        from .watcher import Watcher

        return Watcher(self, options)
