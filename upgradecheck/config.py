"""Configuration models using Pydantic.

The scanner location comes from the ``DEPENDENCY_CHECK_SCRIPT`` environment
variable, optionally backed by a YAML config file.  Both are folded into an
explicit ``AppConfig`` that is validated once at startup, so a missing
scanner fails fast instead of deep inside the pipeline.

Example YAML::

    registry:
      rows: 200
      read_timeout: 60
    scanner:
      script: /opt/dependency-check/bin/dependency-check.sh
      timeout: 3600
      fail_on_cvss: 7
      extra_args: ["--disableAssembly"]
    retries: 2
"""

import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigError, ScannerNotConfigured

SCANNER_ENV_VAR = "DEPENDENCY_CHECK_SCRIPT"

MAVEN_SEARCH_URL = "https://search.maven.org/solrsearch/select"
MAVEN_REPOSITORY_URL = "https://repo1.maven.org/maven2"


class RegistryConfig(BaseModel):
    """Where and how to query the package registry.

    Attributes:
        search_url: Maven Central search endpoint.
        repository_url: Base URL of the Maven repository jars are fetched from.
        rows: Page size for the search query.
        connect_timeout: Seconds to wait for a connection.
        read_timeout: Seconds to wait for a response.
    """

    search_url: str = MAVEN_SEARCH_URL
    repository_url: str = MAVEN_REPOSITORY_URL
    rows: int = Field(default=200, ge=1, le=1000)
    connect_timeout: float = Field(default=10.0, gt=0)
    read_timeout: float = Field(default=60.0, gt=0)

    @property
    def timeout(self) -> tuple[float, float]:
        return (self.connect_timeout, self.read_timeout)


class ScannerConfig(BaseModel):
    """How to launch OWASP dependency-check.

    Attributes:
        script: Path to ``dependency-check.sh`` (or ``.bat``).
        timeout: Seconds before the scan is killed.  ``None`` waits forever.
        fail_on_cvss: Passed as ``--failOnCVSS``; the scanner exits non-zero
            when a finding scores at or above it.  ``11`` never fails.
        output_dir: Directory for the scanner's own report files.  Defaults
            to a ``report`` directory next to the downloaded jar.
        extra_args: Additional arguments appended verbatim.
    """

    script: Path | None = None
    timeout: float | None = Field(default=1800.0, gt=0)
    fail_on_cvss: float = Field(default=0.0, ge=0.0, le=11.0)
    output_dir: Path | None = None
    extra_args: list[str] = Field(default_factory=list)

    def check(self) -> Path:
        """Validate that the scanner can be launched.

        Returns:
            The resolved script path.

        Raises:
            ScannerNotConfigured: if the script is unset, missing, or not
                executable.
        """
        if self.script is None or not str(self.script).strip():
            raise ScannerNotConfigured(f"Set {SCANNER_ENV_VAR} to the dependency-check launcher script")
        script = self.script.expanduser()
        if not script.exists():
            raise ScannerNotConfigured(f"Scanner script {script} does not exist")
        if not script.is_file():
            raise ScannerNotConfigured(f"Scanner script {script} is not a file")
        if not os.access(script, os.X_OK):
            raise ScannerNotConfigured(f"Scanner script {script} is not executable")
        return script.resolve()


class AppConfig(BaseModel):
    """Validated configuration for one run.

    Attributes:
        registry: Registry query settings.
        scanner: Scanner launch settings.
        retries: Extra registry attempts made by the caller after a
            ``RegistryUnreachable`` failure.
    """

    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    scanner: ScannerConfig = Field(default_factory=ScannerConfig)
    retries: int = Field(default=0, ge=0, le=10)


def load_config(path: Path) -> AppConfig:
    """Load a config from a YAML file.

    Args:
        path: Path to the config file.

    Returns:
        Validated ``AppConfig`` instance.

    Raises:
        ConfigError: if the file can't be read, isn't YAML, or fails
            validation.
    """
    try:
        content = path.read_text(encoding="utf-8")
        raw = yaml.safe_load(content) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"{path} is not valid YAML: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid config in {path}: {e}") from e


def resolve_config(path: Path | None = None, env: Mapping[str, str] | None = None) -> AppConfig:
    """Build the run configuration from an optional file and the environment.

    ``DEPENDENCY_CHECK_SCRIPT`` overrides ``scanner.script`` from the file.

    Args:
        path: Optional YAML config file.
        env: Environment mapping; defaults to ``os.environ``.

    Returns:
        Merged ``AppConfig``.
    """
    env = os.environ if env is None else env
    cfg = load_config(path) if path is not None else AppConfig()

    script = (env.get(SCANNER_ENV_VAR) or "").strip()
    if script:
        cfg = cfg.model_copy(update={"scanner": cfg.scanner.model_copy(update={"script": Path(script)})})
    return cfg
