"""upgradecheck: is the latest same-major upgrade of a library safe?

This package resolves the newest published version on the same major line
as a reference version, runs OWASP dependency-check against it, and turns
the scanner's output into a single verdict.
"""

__version__ = "0.1.0"
