"""Error taxonomy for the upgrade-check pipeline.

Every pipeline stage fails with a subclass of ``UpgradeCheckError``.  Each
class carries the process exit code the CLI reports for it, so the codes
stay stable no matter where the error is raised.

``ScanFailed`` is deliberately absent: it is a ``ScanStatus`` of the final
outcome, not an exception.
"""


class UpgradeCheckError(Exception):
    """Base class for all pipeline errors.

    Attributes:
        exit_code: Process exit code reported by the CLI.
        label: Short name printed alongside the message.
    """

    exit_code: int = 1
    label: str = "Error"

    def __str__(self) -> str:
        message = super().__str__()
        return f"{self.label}: {message}" if message else self.label


class InvalidVersion(UpgradeCheckError, ValueError):
    exit_code = 5
    label = "InvalidVersion"


class NoMatchingMajorVersion(UpgradeCheckError):
    """No published version shares the reference's major version.

    This is a business outcome ("no compatible upgrade exists"), not a
    system fault.
    """

    exit_code = 3
    label = "NoMatchingMajorVersion"


class RegistryUnreachable(UpgradeCheckError):
    exit_code = 10
    label = "RegistryUnreachable"


class CoordinateNotFound(UpgradeCheckError):
    exit_code = 11
    label = "CoordinateNotFound"


class MalformedResponse(UpgradeCheckError):
    exit_code = 12
    label = "MalformedResponse"


class ArtifactDownloadFailed(UpgradeCheckError):
    exit_code = 13
    label = "ArtifactDownloadFailed"


class ScannerNotConfigured(UpgradeCheckError):
    exit_code = 20
    label = "ScannerNotConfigured"


class ScannerLaunchFailed(UpgradeCheckError):
    exit_code = 21
    label = "ScannerLaunchFailed"


class ScannerTimeout(UpgradeCheckError):
    exit_code = 22
    label = "ScannerTimeout"


class ConfigError(UpgradeCheckError):
    exit_code = 30
    label = "ConfigError"
