"""Looking up crates in the crates.io sparse index."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

import requests

_logger = logging.getLogger(__name__)

INDEX_URL = "https://index.crates.io/"
_TIMEOUT = 30
_NOT_FOUND = {404, 410, 451}
_CRATE_NAME = re.compile(r"[A-Za-z][A-Za-z0-9_-]{0,63}", re.ASCII)


def _index_path(name: str) -> str:
    if not _CRATE_NAME.fullmatch(name):
        raise ValueError(f"invalid crate name {name!r}")
    lower = name.lower()
    if len(lower) <= 2:
        return f"{len(lower)}/{lower}"
    if len(lower) == 3:
        return f"3/{lower[0]}/{lower}"
    return f"{lower[:2]}/{lower[2:4]}/{lower}"


@dataclass
class IndexKrate:
    """A crate's entries in the index, one per published version."""

    name: str
    versions: list[dict[str, Any]] = field(default_factory=list)

    @staticmethod
    def parse(name: str, body: str) -> IndexKrate:
        """Parse the newline-delimited JSON of an index file."""
        entries = [json.loads(line) for line in body.splitlines() if line.strip()]
        return IndexKrate(name, entries)

    @property
    def version_numbers(self) -> list[str]:
        return [entry.get("vers", "") for entry in self.versions]


class RemoteIndex:
    """An HTTP client for the sparse index, reusing ETags between requests."""

    def __init__(self, session: requests.Session | None = None) -> None:
        self._session = session or requests.Session()
        self._etags: dict[str, str] = {}
        self._bodies: dict[str, str] = {}

    @classmethod
    def open(cls) -> RemoteIndex:
        """Open a connection to the index."""
        return cls()

    def krate(self, name: str) -> IndexKrate | None:
        """Fetch a crate's index entry; ``None`` if the crate does not exist."""
        url = INDEX_URL + _index_path(name)
        headers = {}
        etag = self._etags.get(name)
        if etag:
            headers["If-None-Match"] = etag
        response = self._session.get(url, headers=headers, timeout=_TIMEOUT)
        if response.status_code in _NOT_FOUND:
            return None
        if response.status_code == 304:
            body = self._bodies.get(name)
            if body is None:
                raise RuntimeError(f"index reported {name} unchanged but nothing is cached")
        else:
            response.raise_for_status()
            body = response.text
            new_etag = response.headers.get("ETag")
            if new_etag:
                self._etags[name] = new_etag
            self._bodies[name] = body
        return IndexKrate.parse(name, body)


class CratesIoIndex:
    """Cached crate lookups; only crates.io itself can be queried."""

    def __init__(self) -> None:
        self._index: RemoteIndex | None = None
        self._cache: dict[str, IndexKrate | None] = {}

    def has_krate(self, registry: str | None, name: str) -> bool:
        """Whether the crate exists in the index."""
        return self.krate(registry, name) is not None

    def has_krate_version(
        self, registry: str | None, name: str, version: str
    ) -> bool | None:
        """Whether the version is published; ``None`` if the crate is unknown."""
        krate = self.krate(registry, name)
        if krate is None:
            return None
        return version in krate.version_numbers

    def update_krate(self, registry: str | None, name: str) -> None:
        """Forget the cached entry so the next lookup fetches it again."""
        if registry is not None:
            return
        self._cache.pop(name, None)

    def krate(self, registry: str | None, name: str) -> IndexKrate | None:
        """The crate's index entry, fetched once and then cached."""
        if registry is not None:
            _logger.debug("Cannot connect to registry `%s`", registry)
            return None
        if name in self._cache:
            _logger.debug("Reusing index for %s", name)
            return self._cache[name]
        if self._index is None:
            _logger.debug("Connecting to index")
            self._index = RemoteIndex.open()
        _logger.debug("Downloading index for %s", name)
        entry = self._index.krate(name)
        self._cache[name] = entry
        return entry