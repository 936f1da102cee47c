"""Registry lookups: which versions of a coordinate are published.

All registry network I/O is isolated here.  Catalogs only retrieve; choosing
a version is ``selector``'s job.  No retries happen at this layer, a
transport failure surfaces immediately as ``RegistryUnreachable`` and the
caller decides whether to try again.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import Any

import requests

from . import __version__
from .config import RegistryConfig
from .errors import CoordinateNotFound, MalformedResponse, RegistryUnreachable
from .models import Coordinate, VersionSet


def requests_session() -> requests.Session:
    """Create a requests session with the headers every registry call uses.

    Returns:
        Configured ``requests.Session``.
    """
    s = requests.Session()
    s.headers.update(
        {
            "User-Agent": f"upgradecheck/{__version__}",
            "Accept": "application/json",
        }
    )
    return s


class VersionCatalog(ABC):
    """Source of published versions for a coordinate."""

    @abstractmethod
    def fetch(self, coordinate: Coordinate) -> VersionSet:
        """Return every published version of ``coordinate``.

        Raises:
            RegistryUnreachable: on network or transport failure.
            CoordinateNotFound: if the registry knows no such artifact.
            MalformedResponse: if the answer can't be read as a version list.
        """
        ...


class InMemoryCatalog(VersionCatalog):
    """Catalog backed by a fixed mapping, for tests and offline runs."""

    def __init__(self, versions: Mapping[Coordinate, Iterable[str]]):
        self._versions = {coord: list(vs) for coord, vs in versions.items()}

    def fetch(self, coordinate: Coordinate) -> VersionSet:
        if coordinate not in self._versions:
            raise CoordinateNotFound(f"{coordinate} is not in the catalog")
        return VersionSet.from_iterable(coordinate, self._versions[coordinate])


class MavenCentralCatalog(VersionCatalog):
    """Catalog backed by the Maven Central search API.

    Queries ``solrsearch/select`` with ``core=gav``, which returns one
    document per published version, and pages through the results until
    ``numFound`` documents have been read.

    Documentation: https://central.sonatype.org/search/rest-api-guide/
    """

    def __init__(self, config: RegistryConfig | None = None, session: requests.Session | None = None):
        self.config = config or RegistryConfig()
        self.session = session or requests_session()

    def fetch(self, coordinate: Coordinate) -> VersionSet:
        versions: list[str] = []
        start = 0
        while True:
            data = self._query(coordinate, start)
            total, docs = _parse_page(data)
            if total == 0:
                raise CoordinateNotFound(f"Maven Central has no artifact {coordinate}")
            versions.extend(docs)
            start += len(docs)
            if not docs or start >= total:
                break
        return VersionSet.from_iterable(coordinate, versions)

    def _query(self, coordinate: Coordinate, start: int) -> Any:
        params = {
            "q": f'g:"{coordinate.group}" AND a:"{coordinate.artifact}"',
            "core": "gav",
            "rows": self.config.rows,
            "start": start,
            "wt": "json",
        }
        try:
            r = self.session.get(self.config.search_url, params=params, timeout=self.config.timeout)
        except requests.RequestException as e:
            raise RegistryUnreachable(f"Failed to query {self.config.search_url}: {e}") from e

        if r.status_code == 404:
            raise CoordinateNotFound(f"Maven Central has no artifact {coordinate}")
        if not 200 <= r.status_code < 300:
            body = (r.text or "")[:500]
            raise RegistryUnreachable(
                f"Error returned from server. Status code: {r.status_code}. Response body: {body}"
            )
        try:
            return r.json()
        except ValueError as e:
            raise MalformedResponse(f"Registry response is not JSON: {e}") from e


def _parse_page(data: Any) -> tuple[int, list[str]]:
    """Extract ``(numFound, [versions])`` from one search response page.

    Raises:
        MalformedResponse: if the page doesn't have the expected shape.
    """
    if not isinstance(data, dict):
        raise MalformedResponse("Registry response is not a JSON object")
    response = data.get("response")
    if not isinstance(response, dict):
        raise MalformedResponse("Registry response has no 'response' object")
    docs = response.get("docs")
    if not isinstance(docs, list):
        raise MalformedResponse("Registry response has no 'response.docs' list")

    total = response.get("numFound", len(docs))
    if not isinstance(total, int) or isinstance(total, bool):
        raise MalformedResponse(f"Registry response has a non-integer numFound: {total!r}")

    out: list[str] = []
    for doc in docs:
        v = doc.get("v") if isinstance(doc, dict) else None
        if not isinstance(v, str):
            raise MalformedResponse(f"Registry document has no version string: {doc!r}")
        out.append(v)
    return total, out
