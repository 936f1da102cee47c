"""Command line entry point.

Usage::

    DEPENDENCY_CHECK_SCRIPT=/opt/dependency-check/bin/dependency-check.sh \\
        upgradecheck org.apache.logging.log4j log4j-core 2.17.0

Exit codes are stable across releases:

====  ==========================================================
0     Clean: no known vulnerabilities in the selected version
1     VulnerabilitiesFound
2     Usage error
3     NoMatchingMajorVersion: no compatible upgrade exists
4     ScanFailed (including an aborted scan)
5     InvalidVersion: the reference version does not parse
10    RegistryUnreachable
11    CoordinateNotFound
12    MalformedResponse
13    ArtifactDownloadFailed
20    ScannerNotConfigured
21    ScannerLaunchFailed
22    ScannerTimeout
30    ConfigError
====  ==========================================================
"""

import argparse
import sys
from collections.abc import Sequence
from functools import partial
from pathlib import Path

from pydantic import ValidationError

from . import __version__
from .artifacts import download_artifact
from .catalog import MavenCentralCatalog, requests_session
from .config import SCANNER_ENV_VAR, AppConfig, resolve_config
from .errors import ConfigError, NoMatchingMajorVersion, UpgradeCheckError
from .models import Coordinate, ScanStatus
from .pipeline import run_pipeline
from .reporter import format_outcome, write_markdown_report
from .scanner import DependencyCheckScanner

EXIT_CODES: dict[ScanStatus, int] = {
    ScanStatus.CLEAN: 0,
    ScanStatus.VULNERABILITIES_FOUND: 1,
    ScanStatus.SCAN_FAILED: 4,
}


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="upgradecheck",
        description=(
            "Find the latest published version sharing the major version of VERSION "
            "and scan it with OWASP dependency-check."
        ),
        epilog=f"The dependency-check launcher is read from ${SCANNER_ENV_VAR}.",
    )
    p.add_argument("group", help="Maven groupId, e.g. org.apache.logging.log4j")
    p.add_argument("artifact", help="Maven artifactId, e.g. log4j-core")
    p.add_argument("reference", metavar="VERSION", help="Version in use now, e.g. 2.17.0")
    p.add_argument("--config", type=Path, help="YAML config file")
    p.add_argument("--timeout", type=float, help="Seconds before the scan is killed (0 disables)")
    p.add_argument("--fail-on-cvss", type=float, help="CVSS score at or above which findings fail the scan")
    p.add_argument("--retries", type=int, help="Extra registry attempts if it is unreachable")
    p.add_argument("--stable-only", action="store_true", help="Never select a qualified (-rc, -beta...) version")
    p.add_argument("--work-dir", type=Path, help="Keep the downloaded jar and scanner report here")
    p.add_argument("--report", type=Path, help="Write a Markdown verdict to this path")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def _apply_overrides(cfg: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Fold command line flags over the file/environment config.

    Raises:
        ConfigError: if a flag is out of range.
    """
    raw = cfg.model_dump()
    if args.timeout is not None:
        raw["scanner"]["timeout"] = None if args.timeout == 0 else args.timeout
    if args.fail_on_cvss is not None:
        raw["scanner"]["fail_on_cvss"] = args.fail_on_cvss
    if args.retries is not None:
        raw["retries"] = args.retries
    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid option: {e}") from e


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    coordinate = Coordinate(group=args.group, artifact=args.artifact)

    try:
        cfg = _apply_overrides(resolve_config(args.config), args)
        scanner = DependencyCheckScanner(cfg.scanner)
        session = requests_session()
        catalog = MavenCentralCatalog(cfg.registry, session=session)
        fetch = partial(
            download_artifact,
            session,
            base_url=cfg.registry.repository_url,
            timeout=cfg.registry.timeout,
        )
        result = run_pipeline(
            coordinate,
            args.reference,
            catalog=catalog,
            scanner=scanner,
            fetch_artifact=fetch,
            work_dir=args.work_dir,
            retries=cfg.retries,
            include_prereleases=not args.stable_only,
        )
    except NoMatchingMajorVersion as e:
        print(f"No compatible upgrade available: {e}")
        return e.exit_code
    except UpgradeCheckError as e:
        print(str(e), file=sys.stderr)
        return e.exit_code

    outcome = result.outcome
    print(format_outcome(outcome))
    for finding in outcome.findings:
        print(f"  - {finding}")
    if outcome.status is ScanStatus.SCAN_FAILED and outcome.diagnostic:
        print(outcome.diagnostic, file=sys.stderr)

    if args.report:
        write_markdown_report(args.report, outcome, reference=result.reference, candidates=result.candidates)
        print(f"Wrote verdict report to {args.report}")

    return EXIT_CODES[outcome.status]


if __name__ == "__main__":
    raise SystemExit(main())
