"""Value types passed between pipeline stages.

Every stage produces an immutable value consumed by the next one:
``VersionSet`` -> ``Version`` -> ``ScanRequest`` -> ``ScanRun`` ->
``ScanOutcome``.  Nothing here performs I/O.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable

from .errors import InvalidVersion

_VERSION_RE = re.compile(r"^(?P<release>\d+(?:\.\d+)+)(?:[.-](?P<qualifier>[0-9A-Za-z][0-9A-Za-z.+-]*))?$")
_QUALIFIER_SPLIT_RE = re.compile(r"[.+-]")

# Maven qualifiers that name a final release rather than a pre-release.
RELEASE_QUALIFIERS = frozenset({"final", "release", "ga"})


@dataclass(frozen=True)
class Coordinate:
    """Identity of a library in the registry (Maven ``groupId:artifactId``)."""

    group: str
    artifact: str

    def __str__(self) -> str:
        return f"{self.group}:{self.artifact}"

    @property
    def repository_path(self) -> str:
        """Path of the artifact directory in a Maven repository layout."""
        return f"{self.group.replace('.', '/')}/{self.artifact}"


@dataclass(frozen=True)
class Version:
    """A dotted numeric version, optionally with a ``-qualifier`` or
    ``.Qualifier`` suffix (``2.0.0-beta1``, ``4.1.94.Final``).

    Instances compare by version ordering, not by text: release segments
    numerically left to right (trailing zeros ignored), then a release
    without qualifier above the same release with one, then qualifier
    tokens (numeric below alphabetic, numeric compared as integers).
    ``Final``, ``RELEASE`` and ``GA`` rank as the plain release.
    Equality is textual, so ``2.0`` and ``2.0.0`` are distinct values that
    are neither less nor greater than each other.

    Attributes:
        text: The version exactly as published.
        release: Numeric release segments, e.g. ``(2, 17, 1)``.
        qualifier: Text after the numeric release and its separator, or
            ``None``.
    """

    text: str
    release: tuple[int, ...]
    qualifier: str | None = None

    @classmethod
    def parse(cls, text: str) -> "Version":
        """Parse a version string.

        Raises:
            InvalidVersion: if ``text`` is not a dotted numeric version with
                at least two segments.
        """
        raw = (text or "").strip()
        m = _VERSION_RE.match(raw)
        if not m:
            raise InvalidVersion(f"Version '{text}' is not a dotted numeric version")
        release = tuple(int(part) for part in m.group("release").split("."))
        return cls(text=raw, release=release, qualifier=m.group("qualifier"))

    @property
    def major(self) -> int:
        return self.release[0]

    @property
    def is_release_qualifier(self) -> bool:
        return self.qualifier is not None and self.qualifier.lower() in RELEASE_QUALIFIERS

    @property
    def is_prerelease(self) -> bool:
        return self.qualifier is not None and not self.is_release_qualifier

    @property
    def sort_key(self) -> tuple:
        release = list(self.release)
        while len(release) > 1 and release[-1] == 0:
            release.pop()
        if self.qualifier is None or self.is_release_qualifier:
            return (tuple(release), 1, ())
        tokens = []
        for token in _QUALIFIER_SPLIT_RE.split(self.qualifier):
            if not token:
                continue
            if token.isdigit():
                tokens.append((0, int(token), ""))
            else:
                tokens.append((1, 0, token.lower()))
        return (tuple(release), 0, tuple(tokens))

    def __lt__(self, other: "Version") -> bool:
        return self.sort_key < other.sort_key

    def __le__(self, other: "Version") -> bool:
        return self.sort_key <= other.sort_key

    def __gt__(self, other: "Version") -> bool:
        return self.sort_key > other.sort_key

    def __ge__(self, other: "Version") -> bool:
        return self.sort_key >= other.sort_key

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class VersionSet:
    """All published versions of one coordinate, as returned by the registry.

    ``versions`` holds the raw strings in registry order with duplicates
    removed.  Strings that do not parse are kept here but never take part
    in selection.
    """

    coordinate: Coordinate
    versions: tuple[str, ...] = ()

    @classmethod
    def from_iterable(cls, coordinate: Coordinate, versions: Iterable[str]) -> "VersionSet":
        return cls(coordinate=coordinate, versions=tuple(dict.fromkeys(versions)))

    def parsed(self) -> list[Version]:
        """Return the parseable versions sorted ascending."""
        out: list[Version] = []
        for raw in self.versions:
            try:
                out.append(Version.parse(raw))
            except InvalidVersion:
                continue
        out.sort(key=lambda v: v.sort_key)
        return out

    def rejected(self) -> list[str]:
        """Return the raw strings that are excluded because they do not parse."""
        bad: list[str] = []
        for raw in self.versions:
            try:
                Version.parse(raw)
            except InvalidVersion:
                bad.append(raw)
        return bad

    def __len__(self) -> int:
        return len(self.versions)


@dataclass(frozen=True)
class ScanRequest:
    """Everything the scanner needs to assess one artifact version."""

    coordinate: Coordinate
    version: Version
    artifact_path: Path | None = None

    @property
    def gav(self) -> str:
        return f"{self.coordinate}:{self.version}"

    @property
    def jar_name(self) -> str:
        return f"{self.coordinate.artifact}-{self.version}.jar"

    def with_artifact(self, path: Path) -> "ScanRequest":
        return ScanRequest(coordinate=self.coordinate, version=self.version, artifact_path=path)


@dataclass(frozen=True)
class ScanRun:
    """Raw result of one scanner process, uninterpreted."""

    request: ScanRequest
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0

    @property
    def output(self) -> str:
        if self.stdout and self.stderr:
            return f"{self.stdout}\n{self.stderr}"
        return self.stdout or self.stderr


@dataclass(frozen=True)
class Finding:
    """A single vulnerability identifier reported by the scanner.

    Attributes:
        identifier: Vulnerability id as printed, e.g. ``CVE-2021-44228`` or
            ``sonatype-2021-4682``.
        dependency: File the scanner attributed the finding to, if shown.
        cvss: Score printed next to the id, if shown.
    """

    identifier: str
    dependency: str | None = None
    cvss: float | None = None

    def __str__(self) -> str:
        text = self.identifier
        if self.cvss is not None:
            text += f" ({self.cvss:.1f})"
        if self.dependency:
            text += f" in {self.dependency}"
        return text


class ScanStatus(str, Enum):
    CLEAN = "clean"
    VULNERABILITIES_FOUND = "vulnerabilities_found"
    SCAN_FAILED = "scan_failed"


@dataclass(frozen=True)
class ScanOutcome:
    """Terminal value of the pipeline.

    ``findings`` is non-empty exactly when ``status`` is
    ``VULNERABILITIES_FOUND``.  ``diagnostic`` keeps the raw scanner output
    for ``SCAN_FAILED`` so the user can see what went wrong.
    """

    status: ScanStatus
    request: ScanRequest
    findings: tuple[Finding, ...] = field(default_factory=tuple)
    reason: str = ""
    diagnostic: str = ""
    exit_code: int | None = None

    @property
    def version(self) -> Version:
        return self.request.version
