"""Utility helpers."""

from .semver import SemanticVersion, compare_versions, is_valid_version, latest_version, next_version

__all__ = ["SemanticVersion", "compare_versions", "is_valid_version", "latest_version", "next_version"]
