"""Download the selected artifact so the scanner has a file to analyse."""

from pathlib import Path

import requests

from .config import MAVEN_REPOSITORY_URL
from .errors import ArtifactDownloadFailed
from .models import ScanRequest

DEFAULT_HTTP_TIMEOUT = (10, 300)  # (connect, read)


def artifact_url(request: ScanRequest, base_url: str = MAVEN_REPOSITORY_URL) -> str:
    """Build the Maven repository URL of the request's jar."""
    coord = request.coordinate
    return f"{base_url.rstrip('/')}/{coord.repository_path}/{request.version}/{request.jar_name}"


def download_artifact(
    session: requests.Session,
    request: ScanRequest,
    dest_dir: Path,
    *,
    base_url: str = MAVEN_REPOSITORY_URL,
    timeout: tuple[float, float] = DEFAULT_HTTP_TIMEOUT,
) -> Path:
    """Download the jar for ``request`` into ``dest_dir``.

    An existing file with the same name is reused.

    Args:
        session: Requests session.
        request: Coordinate and version to fetch.
        dest_dir: Directory the jar is written to (created if missing).
        base_url: Maven repository root.
        timeout: ``(connect, read)`` timeout in seconds.

    Returns:
        Path to the downloaded jar.

    Raises:
        ArtifactDownloadFailed: on HTTP or transport failure.
    """
    dest_dir.mkdir(parents=True, exist_ok=True)
    dest = dest_dir / request.jar_name
    if dest.exists():
        print(f"  File {dest.name} already exists, skipping download.")
        return dest

    url = artifact_url(request, base_url)
    print(f"  Downloading jar file '{dest.name}'")
    tmp = dest.with_suffix(dest.suffix + ".part")
    try:
        with session.get(url, stream=True, timeout=timeout) as r:
            r.raise_for_status()
            with tmp.open("wb") as f:
                for chunk in r.iter_content(chunk_size=1024 * 1024):
                    if chunk:
                        f.write(chunk)
        tmp.replace(dest)
    except (requests.RequestException, OSError) as e:
        tmp.unlink(missing_ok=True)
        raise ArtifactDownloadFailed(f"Failed to download {url}: {e}") from e
    return dest
