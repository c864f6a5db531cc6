"""pkgsyms exception hierarchy.

All exceptions inherit from PkgSymsError so callers can catch the base
class when they want to handle any pkgsyms-specific failure uniformly.
"""

from __future__ import annotations


class PkgSymsError(Exception):
    """Base exception for all pkgsyms errors."""


class ConfigError(PkgSymsError):
    """Configuration-related errors (malformed values, bad limits, etc.)."""


class CrawlError(PkgSymsError):
    """The search root itself could not be walked."""

    def __init__(self, message: str, root: str | None = None) -> None:
        super().__init__(message)
        self.root = root
