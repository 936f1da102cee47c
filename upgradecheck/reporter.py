"""Turn raw scanner output into a verdict, and render that verdict.

The mapping from dependency-check's exit status and console output to a
``ScanStatus`` is an integration contract with the external tool, so it is
written down as a table (``OUTCOME_TABLE``) rather than buried in
conditionals.

dependency-check conventions relied on here:

- Exit ``0``: the scan ran and nothing reached ``--failOnCVSS``.
- Non-zero exit: either ``--failOnCVSS`` tripped (findings are listed) or
  the scan itself failed (no findings listed).
- Findings are printed as ``<file> [(<identifiers>)] : <ids>`` lines below
  one of the ``FINDINGS_MARKERS`` headlines, each id optionally followed
  by ``(<cvss>)``.
"""

import datetime as dt
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .models import Finding, ScanOutcome, ScanRequest, ScanRun, ScanStatus, Version

_TEMPLATES_DIR = Path(__file__).parent / "templates"

FINDINGS_MARKERS = (
    re.compile(r"One or more dependencies were identified with known vulnerabilities"),
    re.compile(
        r"One or more dependencies were identified with vulnerabilities "
        r"that have a CVSS score greater than or equal to"
    ),
)

# CVE-2021-44228, GHSA-jfh8-c2jp-5v3q, sonatype-2021-4682, ... each optionally "(9.8)".
_VULN_ID = r"[0-9A-Za-z][\w.:]*-[\w.:-]*"
_SCORE = r"(?:\s*\(\d+(?:\.\d+)?\))?"

_FINDING_LINE_RE = re.compile(
    r"^(?:\[\w+\]\s*)?(?P<dep>[^\s:()\[\]]+)(?:\s+\([^)]*\))?\s*:\s*"
    rf"(?P<ids>{_VULN_ID}{_SCORE}(?:\s*,\s*{_VULN_ID}{_SCORE})*)\s*$"
)
_VULN_ID_RE = re.compile(rf"({_VULN_ID})(?:\s*\((\d+(?:\.\d+)?)\))?")

# Keep the tail of long scanner logs in diagnostics.
_DIAGNOSTIC_LIMIT = 4000


@dataclass(frozen=True)
class OutcomeRule:
    """One row of the outcome table.

    ``None`` in a condition column matches anything.
    """

    exit_zero: bool | None
    markers: bool | None
    findings: bool | None
    status: ScanStatus
    reason: str

    def matches(self, exit_zero: bool, markers: bool, findings: bool) -> bool:
        return all(
            want is None or want == got
            for want, got in ((self.exit_zero, exit_zero), (self.markers, markers), (self.findings, findings))
        )


OUTCOME_TABLE: tuple[OutcomeRule, ...] = (
    OutcomeRule(True, False, None, ScanStatus.CLEAN, "no known vulnerabilities reported"),
    OutcomeRule(None, True, False, ScanStatus.SCAN_FAILED, "vulnerabilities reported but none could be parsed"),
    OutcomeRule(True, True, True, ScanStatus.VULNERABILITIES_FOUND, "vulnerabilities below the failure threshold"),
    OutcomeRule(False, True, True, ScanStatus.VULNERABILITIES_FOUND, "vulnerabilities at or above the failure threshold"),
    OutcomeRule(False, False, None, ScanStatus.SCAN_FAILED, "scanner exited with status {exit_code}"),
)


def has_findings_marker(output: str) -> bool:
    return any(m.search(output) for m in FINDINGS_MARKERS)


def extract_findings(output: str) -> list[Finding]:
    """Pull vulnerability ids out of dependency-check console output.

    Args:
        output: Combined stdout/stderr of the scanner.

    Returns:
        Findings in order of first appearance, without duplicates.  The
        same id is usually listed twice (without and then with a score);
        the scored entry wins.
    """
    seen: dict[tuple[str, str | None], Finding] = {}
    for line in output.splitlines():
        m = _FINDING_LINE_RE.match(line.strip())
        if not m:
            continue
        dep = m.group("dep")
        for vm in _VULN_ID_RE.finditer(m.group("ids")):
            key = (vm.group(1), dep)
            score = float(vm.group(2)) if vm.group(2) else None
            existing = seen.get(key)
            if existing is None or (existing.cvss is None and score is not None):
                seen[key] = Finding(identifier=vm.group(1), dependency=dep, cvss=score)
    return list(seen.values())


def classify(exit_code: int, output: str) -> tuple[OutcomeRule, list[Finding]]:
    """Look up the table row for an exit code and output."""
    markers = has_findings_marker(output)
    findings = extract_findings(output) if markers else []
    for rule in OUTCOME_TABLE:
        if rule.matches(exit_code == 0, markers, bool(findings)):
            return rule, findings
    raise AssertionError("OUTCOME_TABLE does not cover every case")


def interpret_output(request: ScanRequest, stdout: str, stderr: str, exit_code: int) -> ScanOutcome:
    """Map scanner exit status and output to a ``ScanOutcome``.

    Args:
        request: What was scanned.
        stdout: Scanner standard output.
        stderr: Scanner standard error.
        exit_code: Scanner exit status.

    Returns:
        The outcome; for ``SCAN_FAILED`` the raw output is kept in
        ``diagnostic``.
    """
    return interpret(ScanRun(request=request, exit_code=exit_code, stdout=stdout, stderr=stderr))


def interpret(run: ScanRun) -> ScanOutcome:
    rule, findings = classify(run.exit_code, run.output)
    diagnostic = ""
    if rule.status is ScanStatus.SCAN_FAILED:
        diagnostic = (run.stderr.strip() or run.stdout.strip())[-_DIAGNOSTIC_LIMIT:]
    return ScanOutcome(
        status=rule.status,
        request=run.request,
        findings=tuple(findings),
        reason=rule.reason.format(exit_code=run.exit_code),
        diagnostic=diagnostic,
        exit_code=run.exit_code,
    )


def format_outcome(outcome: ScanOutcome) -> str:
    """One-line human readable verdict."""
    gav = outcome.request.gav
    if outcome.status is ScanStatus.CLEAN:
        return f"There is no vulnerability in '{gav}'. It is safe to use."
    if outcome.status is ScanStatus.VULNERABILITIES_FOUND:
        ids = list(dict.fromkeys(f.identifier for f in outcome.findings))
        noun = "vulnerability" if len(ids) == 1 else "vulnerabilities"
        return f"Found {len(ids)} {noun} in '{gav}': {', '.join(ids)}"
    return f"Scan of '{gav}' failed: {outcome.reason}"


def _now_utc_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).replace(microsecond=0).isoformat()


def write_markdown_report(
    path: Path,
    outcome: ScanOutcome,
    reference: Version | str | None = None,
    candidates: Iterable[Version] = (),
) -> None:
    """Write a Markdown summary of the verdict using Jinja2.

    Args:
        path: Output path for the markdown report.
        outcome: Verdict to render.
        reference: Version the caller started from.
        candidates: Same-major versions that were considered.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=select_autoescape(default_for_string=False, default=False),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    template = env.get_template("verdict.md.j2")

    findings = sorted(outcome.findings, key=lambda f: (f.cvss is None, -(f.cvss or 0.0), f.identifier))
    rendered = template.render(
        generated_at=_now_utc_iso(),
        coordinate=str(outcome.request.coordinate),
        version=str(outcome.version),
        reference=str(reference) if reference is not None else None,
        candidates=[str(v) for v in candidates],
        status=outcome.status.value,
        summary=format_outcome(outcome),
        findings=findings,
        reason=outcome.reason,
        diagnostic=outcome.diagnostic,
        exit_code=outcome.exit_code,
    )

    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        f.write(rendered)
    tmp.replace(path)
