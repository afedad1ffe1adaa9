"""Shared test fixtures."""

import httpx
import pytest

from switchboard.config import Paths, SyncConfig
from switchboard.models import Provider
from switchboard.webdav import WebDAVClient

DAV_PREFIX = "/dav"


class FakeWebDAV:
    """In-memory WebDAV server for httpx.MockTransport.

    Supports the subset switchboard uses: PROPFIND, GET, PUT and MKCOL.
    PUT into a missing collection answers 409, like real servers do.
    """

    def __init__(self):
        self.files: dict[str, str] = {}
        self.dirs: set[str] = {"/"}
        self.requests: list[tuple[str, str]] = []
        self.fail_puts = 0
        self.status_override: int | None = None

    def _path(self, request: httpx.Request) -> str:
        path = request.url.path
        if path.startswith(DAV_PREFIX):
            path = path[len(DAV_PREFIX):]
        path = path.rstrip("/")
        return path or "/"

    @staticmethod
    def _parent(path: str) -> str:
        return path.rsplit("/", 1)[0] or "/"

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = self._path(request)
        method = request.method
        self.requests.append((method, path))

        if self.status_override is not None:
            return httpx.Response(self.status_override)

        if method == "PROPFIND":
            if path in self.files or path in self.dirs:
                return httpx.Response(207, text="<multistatus/>")
            return httpx.Response(404)
        if method == "GET":
            if path in self.files:
                return httpx.Response(200, text=self.files[path])
            return httpx.Response(404)
        if method == "PUT":
            if self.fail_puts:
                self.fail_puts -= 1
                return httpx.Response(500)
            if self._parent(path) not in self.dirs:
                return httpx.Response(409)
            self.files[path] = request.content.decode("utf-8")
            return httpx.Response(201)
        if method == "MKCOL":
            if path in self.dirs:
                return httpx.Response(405)
            if self._parent(path) not in self.dirs:
                return httpx.Response(409)
            self.dirs.add(path)
            return httpx.Response(201)
        return httpx.Response(405)

    def count(self, method: str) -> int:
        return sum(1 for m, _ in self.requests if m == method)


@pytest.fixture
def paths(tmp_path):
    """Isolated root for the store and every tool's native config."""
    return Paths(tmp_path / "home")


@pytest.fixture
def fake_dav():
    return FakeWebDAV()


@pytest.fixture
def sync_config():
    return SyncConfig(
        webdav_url=f"https://dav.example.com{DAV_PREFIX}",
        username="alice",
        password="secret",
        remote_dir="/switchboard",
    )


@pytest.fixture
def dav_client(fake_dav, sync_config):
    """WebDAVClient wired to the in-memory server, with remote_dir already created."""
    fake_dav.dirs.add("/switchboard")
    client = WebDAVClient(sync_config, transport=httpx.MockTransport(fake_dav.handler))
    yield client
    client.close()


def _make_provider(
    id="codex-1-aaaaaa",
    name="main",
    base_url="https://api.example.com/v1",
    api_key="sk-test-1234567890",
    created_at=1000,
    updated_at=None,
    **kwargs,
) -> Provider:
    return Provider(
        id=id,
        name=name,
        base_url=base_url,
        api_key=api_key,
        created_at=created_at,
        updated_at=created_at if updated_at is None else updated_at,
        **kwargs,
    )


@pytest.fixture
def make_provider():
    """Factory for Provider records with sensible defaults."""
    return _make_provider
