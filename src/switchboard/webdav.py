"""Minimal WebDAV client over httpx: exists, get, put, mkcol."""

from __future__ import annotations

import logging

import httpx

from switchboard.config import SyncConfig
from switchboard.errors import NotFoundError, TransportError

logger = logging.getLogger("switchboard.webdav")

DEFAULT_TIMEOUT = 30.0


def normalize_path(remote_dir: str | None) -> str:
    """'/a/b' form with no trailing slash; '/' for empty input."""
    if not remote_dir:
        return "/"
    stripped = remote_dir.strip().strip("/").strip()
    return f"/{stripped}" if stripped else "/"


def join_path(remote_dir: str | None, name: str) -> str:
    base = normalize_path(remote_dir)
    name = name.lstrip("/")
    if base == "/":
        return f"/{name}"
    return f"{base}/{name}"


def _ok(response: httpx.Response) -> bool:
    return 200 <= response.status_code < 300


class WebDAVClient:
    """Talks to one WebDAV collection (SyncConfig.remote_dir on SyncConfig.webdav_url).

    Every method raises TransportError on network failures, timeouts and
    unexpected statuses. Nothing is retried except the single
    create-collections-then-PUT-again path in upload().
    """

    def __init__(
        self,
        config: SyncConfig,
        transport: httpx.BaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        if config.auth_type == "digest":
            auth = httpx.DigestAuth(config.username, config.password)
        else:
            auth = httpx.BasicAuth(config.username, config.password)
        self.remote_dir = normalize_path(config.remote_dir)
        self._client = httpx.Client(
            base_url=config.webdav_url.rstrip("/"),
            auth=auth,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> WebDAVClient:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _url(self, path: str) -> str:
        return str(self._client.base_url.join(path.lstrip("/")))

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise TransportError(f"{method} {self._url(path)} timed out") from e
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {self._url(path)} failed: {e}") from e
        logger.debug("%s %s -> %d", method, path, response.status_code)
        return response

    def _fail(self, method: str, path: str, response: httpx.Response) -> TransportError:
        return TransportError(
            f"{method} {self._url(path)} failed with HTTP {response.status_code}",
            status_code=response.status_code,
        )

    def _exists_path(self, path: str) -> bool:
        response = self._request("PROPFIND", path, headers={"Depth": "0"})
        if _ok(response):
            return True
        if response.status_code == 404:
            return False
        raise self._fail("PROPFIND", path, response)

    def exists(self, name: str) -> bool:
        return self._exists_path(join_path(self.remote_dir, name))

    def download(self, name: str) -> str:
        path = join_path(self.remote_dir, name)
        response = self._request("GET", path)
        if response.status_code == 404:
            raise NotFoundError(f"remote file not found: {self._url(path)}")
        if not _ok(response):
            raise self._fail("GET", path, response)
        return response.text

    def ensure_directory(self, directory: str) -> None:
        """Create every missing collection along directory, parents first."""
        current = ""
        for segment in normalize_path(directory).strip("/").split("/"):
            if not segment:
                continue
            current = f"{current}/{segment}"
            if self._exists_path(current):
                continue
            response = self._request("MKCOL", current)
            # 405: the collection already exists.
            if not (_ok(response) or response.status_code == 405):
                raise self._fail("MKCOL", current, response)
            logger.info("Created remote directory %s", current)

    def upload(self, name: str, text: str) -> None:
        path = join_path(self.remote_dir, name)
        headers = {"Content-Type": "application/json; charset=utf-8"}
        body = text.encode("utf-8")

        response = self._request("PUT", path, content=body, headers=headers)
        if response.status_code in (404, 409):
            parent = path.rsplit("/", 1)[0]
            if not parent:
                raise self._fail("PUT", path, response)
            self.ensure_directory(parent)
            response = self._request("PUT", path, content=body, headers=headers)
        if not _ok(response):
            raise self._fail("PUT", path, response)

        if not self._exists_path(path):
            raise TransportError(f"uploaded file not found on server: {self._url(path)}")
        logger.info("Uploaded %s", path)

    def test_connection(self) -> bool:
        """True if the remote directory can be listed with these credentials."""
        try:
            response = self._request("PROPFIND", self.remote_dir, headers={"Depth": "1"})
        except TransportError as e:
            logger.warning("WebDAV connection test failed: %s", e)
            return False
        if not _ok(response):
            logger.warning("WebDAV connection test got HTTP %d", response.status_code)
            return False
        return True
