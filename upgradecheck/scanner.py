"""Run OWASP dependency-check against a downloaded artifact.

``ScannerInvoker`` owns the subprocess and returns its output untouched.
``DependencyCheckScanner`` pairs it with ``reporter.interpret`` to provide
the ``Scanner`` capability the pipeline depends on, so tests can swap in a
scanner that never launches a process.
"""

import os
import signal
import subprocess
import time
from abc import ABC, abstractmethod
from pathlib import Path

from .config import ScannerConfig
from .errors import ScannerLaunchFailed, ScannerTimeout
from .models import ScanOutcome, ScanRequest, ScanRun
from .reporter import interpret

_POSIX = os.name == "posix"


class Scanner(ABC):
    """Capability that assesses one artifact version for known vulnerabilities."""

    name: str = "base"

    @abstractmethod
    def scan(self, request: ScanRequest) -> ScanOutcome:
        """Scan ``request`` and return the verdict.

        Raises:
            ScannerNotConfigured: if the scanner can't be located.
            ScannerLaunchFailed: if the scanner process can't be started.
            ScannerTimeout: if the scan exceeds its deadline.
        """
        ...


class ScannerInvoker:
    """Launch the dependency-check script and capture what it prints.

    The process is started in its own session on POSIX so a timeout or
    abort can kill the JVM the launcher script spawns, not just the shell.
    Whatever happens, the process is waited on before ``invoke`` returns or
    raises.

    Attributes:
        config: Validated scanner configuration.
    """

    def __init__(self, config: ScannerConfig):
        self.config = config
        self.script = config.check()

    def build_command(self, request: ScanRequest, output_dir: Path) -> list[str]:
        """Build the dependency-check command line for ``request``."""
        return [
            str(self.script),
            "--project",
            request.gav,
            "--scan",
            str(request.artifact_path),
            "--out",
            str(output_dir),
            "--failOnCVSS",
            f"{self.config.fail_on_cvss:g}",
            *self.config.extra_args,
        ]

    def invoke(self, request: ScanRequest) -> ScanRun:
        """Run the scanner to completion.

        Args:
            request: What to scan; ``artifact_path`` must be set.

        Returns:
            Exit code plus full stdout/stderr.

        Raises:
            ScannerLaunchFailed: if there is nothing to scan or the process
                can't be created.
            ScannerTimeout: if ``config.timeout`` elapses first.
        """
        if request.artifact_path is None:
            raise ScannerLaunchFailed(f"No artifact file to scan for {request.gav}")
        output_dir = self.config.output_dir or request.artifact_path.parent / "report"
        cmd = self.build_command(request, output_dir)

        started = time.monotonic()
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=self.script.parent,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=_POSIX,
            )
        except OSError as e:
            raise ScannerLaunchFailed(f"Failed to execute {self.script}: {e}") from e

        with proc:
            try:
                out, err = proc.communicate(timeout=self.config.timeout)
            except subprocess.TimeoutExpired as e:
                _kill(proc)
                raise ScannerTimeout(f"Scan of {request.gav} exceeded {self.config.timeout:g}s") from e
            except BaseException:
                _kill(proc)
                raise

        return ScanRun(
            request=request,
            exit_code=proc.returncode,
            stdout=out.decode("utf-8", errors="replace"),
            stderr=err.decode("utf-8", errors="replace"),
            duration=time.monotonic() - started,
        )


class DependencyCheckScanner(Scanner):
    """``Scanner`` backed by the dependency-check command line tool."""

    name = "dependency-check"

    def __init__(self, config: ScannerConfig):
        self.invoker = ScannerInvoker(config)

    def scan(self, request: ScanRequest) -> ScanOutcome:
        return interpret(self.invoker.invoke(request))


def _kill(proc: subprocess.Popen) -> None:
    """Kill the scanner (and its process group) and drain its pipes."""
    try:
        if _POSIX:
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except ProcessLookupError:
        pass
    proc.communicate()
