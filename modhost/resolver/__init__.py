"""
Artifact resolution.

This package turns artifact locators (paths, URLs, repository
coordinates) into local files.
"""

from modhost.resolver.locator import (
    Coordinate,
    LocatorError,
    LocatorKind,
    ParsedLocator,
    parse_locator,
)
from modhost.resolver.resolver import ArtifactResolver, ResolutionError, ResolvedArtifact

__all__ = [
    "ArtifactResolver",
    "Coordinate",
    "LocatorError",
    "LocatorKind",
    "ParsedLocator",
    "ResolutionError",
    "ResolvedArtifact",
    "parse_locator",
]
