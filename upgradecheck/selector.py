"""Same-major version selection.

Pure functions over in-memory data: no I/O, deterministic for identical
inputs.
"""

from .errors import NoMatchingMajorVersion
from .models import Version, VersionSet


def same_major_versions(versions: VersionSet, major: int, *, include_prereleases: bool = True) -> list[Version]:
    """Return the parseable candidates on one major line, ascending.

    Args:
        versions: Versions published for the coordinate.
        major: Major version to keep.
        include_prereleases: Keep versions carrying a qualifier
            (``-rc1``, ``-beta9`` ...).

    Returns:
        Sorted list of matching versions; unparseable strings are skipped.
    """
    return [
        v for v in versions.parsed() if v.major == major and (include_prereleases or not v.is_prerelease)
    ]


def select_latest_same_major(
    versions: VersionSet,
    reference: Version | str,
    *,
    include_prereleases: bool = True,
) -> Version:
    """Pick the highest version sharing ``reference``'s major component.

    Example::

        >>> vs = VersionSet.from_iterable(coord, ["2.17.0", "2.20.0", "3.0.0"])
        >>> str(select_latest_same_major(vs, "2.17.0"))
        '2.20.0'

    Args:
        versions: Versions published for the coordinate.
        reference: Version the caller is on now.
        include_prereleases: Allow a qualified version to be selected.

    Returns:
        The maximum matching version.  When several are ordinally equal the
        one the registry listed last wins.

    Raises:
        InvalidVersion: if ``reference`` does not parse.
        NoMatchingMajorVersion: if no candidate shares the major version.
    """
    ref = reference if isinstance(reference, Version) else Version.parse(reference)
    candidates = same_major_versions(versions, ref.major, include_prereleases=include_prereleases)
    if not candidates:
        raise NoMatchingMajorVersion(f"No published version of {versions.coordinate} has major version {ref.major}")
    return candidates[-1]
