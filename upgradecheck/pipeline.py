"""Fetch -> select -> download -> scan, end to end.

Each stage blocks until it has a result and the first failure ends the
run.  Stage errors propagate unchanged to the caller; the only thing caught
here is a caller abort during the scan, which becomes a ``SCAN_FAILED``
outcome.
"""

import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

from .catalog import VersionCatalog
from .errors import RegistryUnreachable
from .models import Coordinate, ScanOutcome, ScanRequest, ScanStatus, Version, VersionSet
from .scanner import Scanner
from .selector import same_major_versions, select_latest_same_major

ArtifactFetcher = Callable[[ScanRequest, Path], Path]

DEFAULT_RETRY_WAIT = wait_exponential(multiplier=1, min=1, max=30)


@dataclass(frozen=True)
class PipelineResult:
    """Everything a run produced, for reporting.

    Attributes:
        reference: Version the caller started from.
        versions: All versions the registry returned.
        candidates: Parseable versions on the reference's major line.
        outcome: Scanner verdict for the selected version.
    """

    reference: Version
    versions: VersionSet
    candidates: tuple[Version, ...]
    outcome: ScanOutcome

    @property
    def selected(self) -> Version:
        return self.outcome.version


def fetch_versions(
    catalog: VersionCatalog,
    coordinate: Coordinate,
    retries: int = 0,
    wait: wait_base | None = None,
) -> VersionSet:
    """Fetch versions, retrying only on ``RegistryUnreachable``.

    Args:
        catalog: Version source.
        coordinate: Library to look up.
        retries: Extra attempts after the first failure.
        wait: Tenacity wait strategy between attempts.

    Returns:
        The ``VersionSet`` from the first successful attempt.
    """
    if retries <= 0:
        return catalog.fetch(coordinate)
    retryer = Retrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait if wait is not None else DEFAULT_RETRY_WAIT,
        retry=retry_if_exception_type(RegistryUnreachable),
        before_sleep=lambda state: print(f"  Registry unreachable, retrying (attempt {state.attempt_number + 1})..."),
        reraise=True,
    )
    return retryer(catalog.fetch, coordinate)


def run_pipeline(
    coordinate: Coordinate,
    reference: Version | str,
    *,
    catalog: VersionCatalog,
    scanner: Scanner,
    fetch_artifact: ArtifactFetcher | None = None,
    work_dir: Path | None = None,
    retries: int = 0,
    include_prereleases: bool = True,
    retry_wait: wait_base | None = None,
) -> PipelineResult:
    """Check whether the latest same-major version of ``coordinate`` is safe.

    Args:
        coordinate: Library to check.
        reference: Version the caller is on now.
        catalog: Where published versions come from.
        scanner: What assesses the selected version.
        fetch_artifact: Downloads the selected jar into a directory.  When
            ``None`` the scanner receives a request without a file.
        work_dir: Directory for downloads.  A temporary directory, removed
            afterwards, is used when ``None``.
        retries: Extra registry attempts after ``RegistryUnreachable``.
        include_prereleases: Allow a qualified version to be selected.
        retry_wait: Tenacity wait strategy between registry attempts.

    Returns:
        ``PipelineResult`` holding the verdict.

    Raises:
        UpgradeCheckError: from whichever stage failed first.
    """
    ref = reference if isinstance(reference, Version) else Version.parse(reference)

    print(f"Querying registry for {coordinate}...")
    versions = fetch_versions(catalog, coordinate, retries=retries, wait=retry_wait)
    print(f"  Found {len(versions)} published versions")
    rejected = versions.rejected()
    if rejected:
        print(f"  Ignoring {len(rejected)} unparseable versions: {rejected}")

    candidates = same_major_versions(versions, ref.major, include_prereleases=include_prereleases)
    print(f"Versions having same major version: {[str(v) for v in candidates]}")
    selected = select_latest_same_major(versions, ref, include_prereleases=include_prereleases)
    if selected.sort_key == ref.sort_key:
        print(f"Current version {ref} is already the latest on major version {ref.major}")
    else:
        print(f"Latest version on major version {ref.major}: {selected}")

    request = ScanRequest(coordinate=coordinate, version=selected)
    if fetch_artifact is None:
        outcome = _scan(scanner, request)
    elif work_dir is not None:
        outcome = _scan(scanner, request.with_artifact(fetch_artifact(request, work_dir)))
    else:
        with tempfile.TemporaryDirectory(prefix="upgradecheck_") as tmp:
            outcome = _scan(scanner, request.with_artifact(fetch_artifact(request, Path(tmp))))

    return PipelineResult(reference=ref, versions=versions, candidates=tuple(candidates), outcome=outcome)


def _scan(scanner: Scanner, request: ScanRequest) -> ScanOutcome:
    print(f"Check vulnerabilities in {request.gav} with {scanner.name}")
    try:
        return scanner.scan(request)
    except KeyboardInterrupt:
        return ScanOutcome(status=ScanStatus.SCAN_FAILED, request=request, reason="scan aborted by user")
