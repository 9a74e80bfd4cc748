"""Version parsing and comparison utilities.

Composer versions come in several shapes ("10.2.3", "v2.1", "8.x-1.5" for
legacy Drupal contrib, "dev-main"). These helpers normalize the numeric ones
to semver so the report can tell how big an update was.
"""

from __future__ import annotations

import re

import semver

# Optional "v" and legacy Drupal "8.x-" prefixes, then up to three numbers.
_VERSION_RE = re.compile(r"^(?:\d+\.x-)?v?(\d+)(?:\.(\d+))?(?:\.(\d+))?")


def parse_version(version_str: str) -> semver.Version | None:
    """Parse a composer version string into a semver.Version object.

    Handles incomplete versions by padding with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "8.x-1.5" → "1.5.0"

    Prerelease/build suffixes are ignored. Branch versions such as
    "dev-main" return None.
    """
    match = _VERSION_RE.match(version_str.strip())
    if not match:
        return None
    major, minor, patch = (int(part or 0) for part in match.groups())
    return semver.Version(major, minor, patch)


def bump_kind(old: str, new: str) -> str | None:
    """Classify a version change as "major", "minor" or "patch".

    Examples:
        "1.2.3" → "2.0.0" is "major"
        "1.2.3" → "1.3.0" is "minor"
        "8.x-1.5" → "8.x-1.6" is "minor"

    Returns None if either version can't be parsed or nothing changed.
    """
    old_v, new_v = parse_version(old), parse_version(new)
    if old_v is None or new_v is None:
        return None
    if old_v.major != new_v.major:
        return "major"
    if old_v.minor != new_v.minor:
        return "minor"
    if old_v.patch != new_v.patch:
        return "patch"
    return None
