"""Semantic version helpers for template versions."""

import re
from typing import Iterable, NamedTuple

from ..core.exceptions import ValidationError
from ..models.versioning import ChangeType

_SEMVER_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")

INITIAL_VERSION = "1.0.0"


class SemanticVersion(NamedTuple):
    """A ``major.minor.patch`` version. Tuple ordering is version ordering."""
    major: int
    minor: int
    patch: int

    @classmethod
    def parse(cls, version: str) -> "SemanticVersion":
        match = _SEMVER_RE.match(version or "")
        if not match:
            raise ValidationError(
                f"Invalid version format: {version!r} (expected major.minor.patch)",
                field="version",
                value=version,
            )
        return cls(*(int(part) for part in match.groups()))

    def bump(self, change_type: ChangeType) -> "SemanticVersion":
        """Return the next version for the given change type."""
        change_type = ChangeType(change_type)
        if change_type == ChangeType.MAJOR:
            return SemanticVersion(self.major + 1, 0, 0)
        if change_type == ChangeType.MINOR:
            return SemanticVersion(self.major, self.minor + 1, 0)
        return SemanticVersion(self.major, self.minor, self.patch + 1)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def is_valid_version(version: str) -> bool:
    """Check that a string is a ``major.minor.patch`` version."""
    return bool(_SEMVER_RE.match(version or ""))


def next_version(current: str, change_type: ChangeType) -> str:
    """Compute the version following ``current``.

    >>> next_version("1.4.7", ChangeType.MINOR)
    '1.5.0'
    """
    return str(SemanticVersion.parse(current).bump(change_type))


def compare_versions(version1: str, version2: str) -> int:
    """Return 1, -1 or 0 when ``version1`` is newer, older or equal."""
    v1 = SemanticVersion.parse(version1)
    v2 = SemanticVersion.parse(version2)
    return (v1 > v2) - (v1 < v2)


def latest_version(versions: Iterable[str]) -> str:
    """Return the highest version of a non-empty collection."""
    parsed = [SemanticVersion.parse(v) for v in versions]
    if not parsed:
        raise ValidationError("No versions given", field="versions")
    return str(max(parsed))
