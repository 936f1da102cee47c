"""Unit tests for upgradecheck.artifacts: jar download."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests

from upgradecheck.artifacts import artifact_url, download_artifact
from upgradecheck.errors import ArtifactDownloadFailed
from upgradecheck.models import Coordinate, ScanRequest, Version

REQUEST = ScanRequest(Coordinate("org.apache.logging.log4j", "log4j-core"), Version.parse("2.20.0"))


def _session(chunks=None, error=None) -> MagicMock:
    session = MagicMock()
    resp = session.get.return_value.__enter__.return_value
    if error is not None:
        resp.raise_for_status.side_effect = error
    resp.iter_content.return_value = chunks or []
    return session


class TestArtifactUrl:
    def test_maven_layout(self):
        assert artifact_url(REQUEST) == (
            "https://repo1.maven.org/maven2/org/apache/logging/log4j/log4j-core/2.20.0/log4j-core-2.20.0.jar"
        )

    def test_custom_base(self):
        assert artifact_url(REQUEST, "https://mirror.example/maven/").startswith(
            "https://mirror.example/maven/org/apache/"
        )


class TestDownloadArtifact:
    def test_writes_jar(self, tmp_path: Path):
        session = _session([b"PK\x03\x04", b"", b"rest"])
        path = download_artifact(session, REQUEST, tmp_path / "work")
        assert path == tmp_path / "work" / "log4j-core-2.20.0.jar"
        assert path.read_bytes() == b"PK\x03\x04rest"
        assert not (tmp_path / "work" / "log4j-core-2.20.0.jar.part").exists()

    def test_streams_with_timeout(self, tmp_path: Path):
        session = _session([b"x"])
        download_artifact(session, REQUEST, tmp_path, timeout=(1, 2))
        _, kwargs = session.get.call_args
        assert kwargs["stream"] is True
        assert kwargs["timeout"] == (1, 2)

    def test_reuses_existing_file(self, tmp_path: Path):
        existing = tmp_path / "log4j-core-2.20.0.jar"
        existing.write_bytes(b"cached")
        session = _session([b"new"])
        assert download_artifact(session, REQUEST, tmp_path) == existing
        assert existing.read_bytes() == b"cached"
        session.get.assert_not_called()

    def test_http_error(self, tmp_path: Path):
        session = _session(error=requests.HTTPError("404 Not Found"))
        with pytest.raises(ArtifactDownloadFailed, match="404"):
            download_artifact(session, REQUEST, tmp_path)
        assert list(tmp_path.iterdir()) == []

    def test_connection_error(self, tmp_path: Path):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("refused")
        with pytest.raises(ArtifactDownloadFailed):
            download_artifact(session, REQUEST, tmp_path)

    def test_partial_file_removed(self, tmp_path: Path):
        session = _session()

        def broken_stream(chunk_size):
            yield b"half"
            raise requests.ConnectionError("reset")

        session.get.return_value.__enter__.return_value.iter_content.side_effect = broken_stream
        with pytest.raises(ArtifactDownloadFailed):
            download_artifact(session, REQUEST, tmp_path)
        assert list(tmp_path.iterdir()) == []
