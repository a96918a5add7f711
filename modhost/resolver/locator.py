"""
Artifact Locators.

This module classifies artifact locator strings without touching the
filesystem or the network.

Key features:
- Local paths and file: URLs
- http:// and https:// URLs
- Repository coordinates (group:artifact:version[:type[:classifier]])
- mvn: coordinates (mvn:group/artifact/version[/type[/classifier]])
"""

import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import unquote, urlparse


class LocatorError(Exception):
    """Raised when a locator string is malformed."""

    pass


class LocatorKind(Enum):
    """Locator kind enumeration."""

    PATH = "path"
    URL = "url"
    COORDINATE = "coordinate"


DEFAULT_ARTIFACT_TYPE = "zip"

_SEGMENT = re.compile(r"^[A-Za-z0-9_.\-]+$")
_SCHEME = re.compile(r"^(?P<scheme>[A-Za-z][A-Za-z0-9+.\-]*):")


@dataclass(frozen=True)
class Coordinate:
    """
    Repository coordinate of an artifact.

    Attributes:
        group: Dot-separated group identifier
        artifact: Artifact identifier
        version: Artifact version
        type: File extension of the artifact
        classifier: Optional classifier appended to the file name
    """

    group: str
    artifact: str
    version: str
    type: str = DEFAULT_ARTIFACT_TYPE
    classifier: str | None = None

    @property
    def filename(self) -> str:
        """File name of the artifact inside its version directory."""
        suffix = f"-{self.classifier}" if self.classifier else ""
        return f"{self.artifact}-{self.version}{suffix}.{self.type}"

    @property
    def repository_path(self) -> str:
        """Path of the artifact relative to a repository root."""
        return "/".join(
            [*self.group.split("."), self.artifact, self.version, self.filename]
        )


@dataclass(frozen=True)
class ParsedLocator:
    """
    A classified artifact locator.

    Attributes:
        raw: The locator as given
        kind: Locator kind
        path: Local path (PATH kind only)
        url: Network URL (URL kind only)
        coordinate: Repository coordinate (COORDINATE kind only)
    """

    raw: str
    kind: LocatorKind
    path: str | None = None
    url: str | None = None
    coordinate: Coordinate | None = None


def parse_locator(locator: str) -> ParsedLocator:
    """
    Classify an artifact locator.

    Args:
        locator: Locator string

    Returns:
        ParsedLocator

    Raises:
        LocatorError: If the locator is empty, malformed or uses an
            unsupported scheme
    """
    if not isinstance(locator, str) or not locator.strip():
        raise LocatorError("Empty artifact locator")

    value = locator.strip()

    if value.startswith("mvn:"):
        parts = value[len("mvn:"):].split("/")
        return ParsedLocator(
            raw=locator,
            kind=LocatorKind.COORDINATE,
            coordinate=_parse_coordinate_parts(locator, parts),
        )

    match = _SCHEME.match(value)
    if match and not _is_drive_path(value):
        scheme = match.group("scheme").lower()
        if scheme == "file":
            return ParsedLocator(
                raw=locator, kind=LocatorKind.PATH, path=_file_url_to_path(value)
            )
        if scheme in ("http", "https"):
            parsed = urlparse(value)
            if not parsed.netloc:
                raise LocatorError(f"Missing host in URL locator: {locator}")
            return ParsedLocator(raw=locator, kind=LocatorKind.URL, url=value)
        if "/" not in value and "\\" not in value:
            parts = value.split(":")
            if len(parts) >= 3:
                return ParsedLocator(
                    raw=locator,
                    kind=LocatorKind.COORDINATE,
                    coordinate=_parse_coordinate_parts(locator, parts),
                )
            raise LocatorError(f"Malformed coordinate locator: {locator}")
        raise LocatorError(f"Unsupported locator scheme '{scheme}': {locator}")

    return ParsedLocator(raw=locator, kind=LocatorKind.PATH, path=value)


def _parse_coordinate_parts(locator: str, parts: list[str]) -> Coordinate:
    """
    Build a Coordinate from its split parts.

    Args:
        locator: Locator as given (for error messages)
        parts: group, artifact, version and optional type, classifier

    Returns:
        Coordinate

    Raises:
        LocatorError: If the number of parts or a part is invalid
    """
    if len(parts) < 3 or len(parts) > 5:
        raise LocatorError(
            f"Malformed coordinate locator: {locator}. "
            f"Expected group:artifact:version[:type[:classifier]]"
        )
    for part in parts:
        if not _SEGMENT.match(part):
            raise LocatorError(f"Invalid coordinate segment '{part}' in {locator}")

    group, artifact, version = parts[:3]
    artifact_type = parts[3] if len(parts) > 3 else DEFAULT_ARTIFACT_TYPE
    classifier = parts[4] if len(parts) > 4 else None
    return Coordinate(
        group=group,
        artifact=artifact,
        version=version,
        type=artifact_type,
        classifier=classifier,
    )


def _is_drive_path(value: str) -> bool:
    """True for Windows drive paths such as C:\\modules or C:/modules."""
    return len(value) >= 2 and value[1] == ":" and value[2:3] in ("", "/", "\\")


def _file_url_to_path(url: str) -> str:
    """
    Convert a file: URL into a local path string.

    Accepts file:/abs, file:///abs and file://localhost/abs.
    """
    parsed = urlparse(url)
    if parsed.netloc and parsed.netloc != "localhost":
        raise LocatorError(f"Remote host in file URL is not supported: {url}")
    path = unquote(parsed.path)
    if not path:
        raise LocatorError(f"Missing path in file URL: {url}")
    return path
