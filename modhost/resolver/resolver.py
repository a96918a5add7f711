"""
Artifact Resolver.

This module maps artifact locators to local, readable files.

Key features:
- Local paths and file: URLs resolved in place
- http(s) downloads through httpx into a local cache
- Repository coordinates resolved against ordered repositories
- Atomic cache entries (temp file + os.replace)
- Idempotent, thread-safe resolution
"""

import hashlib
import logging
import os
import shutil
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

import httpx

from modhost.resolver.locator import (
    Coordinate,
    LocatorError,
    LocatorKind,
    parse_locator,
)

logger = logging.getLogger(__name__)


class ResolutionError(Exception):
    """Raised when a locator cannot be mapped to a local file."""

    pass


@dataclass(frozen=True)
class ResolvedArtifact:
    """
    A locator mapped to a local file or directory.

    Attributes:
        locator: The originating locator
        path: Local path of the artifact
    """

    locator: str
    path: Path


class ArtifactResolver:
    """
    Resolves artifact locators to local paths, downloading as needed.

    Remote artifacts are fetched once per cache directory. A resolved
    locator is remembered for the lifetime of the resolver, so repeated
    resolutions never hit the network again.
    """

    def __init__(
        self,
        cache_dir: Path,
        repositories: list[str] | None = None,
        base_dir: Path | None = None,
        timeout: float = 60.0,
        client: httpx.Client | None = None,
    ):
        """
        Initialize ArtifactResolver.

        Args:
            cache_dir: Directory for downloaded artifacts
            repositories: Ordered repository roots (directories, file: or
                http(s) URLs) used for coordinate locators
            base_dir: Directory relative paths are resolved against
            timeout: Download timeout in seconds
            client: Optional preconfigured httpx client
        """
        self.cache_dir = Path(cache_dir)
        self.repositories = list(repositories or [])
        self.base_dir = Path(base_dir) if base_dir is not None else Path.cwd()
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._resolved: dict[str, ResolvedArtifact] = {}
        self._lock = threading.Lock()

    def resolve(self, locator: str) -> ResolvedArtifact:
        """
        Resolve a locator to a local artifact.

        Args:
            locator: Artifact locator

        Returns:
            ResolvedArtifact pointing at an existing local path

        Raises:
            ResolutionError: If the locator is malformed, not found in any
                source, or the download fails
        """
        with self._lock:
            cached = self._resolved.get(locator)
            if cached is not None and cached.path.exists():
                return cached

            try:
                parsed = parse_locator(locator)
            except LocatorError as e:
                raise ResolutionError(str(e)) from e

            if parsed.kind is LocatorKind.PATH:
                path = self._resolve_path(locator, parsed.path)
            elif parsed.kind is LocatorKind.URL:
                path = self._fetch(parsed.url)
                if path is None:
                    raise ResolutionError(f"Artifact not found: {locator}")
            else:
                path = self._resolve_coordinate(locator, parsed.coordinate)

            artifact = ResolvedArtifact(locator=locator, path=path)
            self._resolved[locator] = artifact
            logger.debug("Resolved %s to %s", locator, path)
            return artifact

    def is_cached(self, url: str) -> bool:
        """
        Check if a remote URL already has a cache entry.

        Args:
            url: Remote artifact URL

        Returns:
            True if the artifact is in the cache directory
        """
        return self._cache_path(url).exists()

    def clear_cache(self) -> None:
        """Remove every cache entry and forget resolved locators."""
        with self._lock:
            self._resolved.clear()
            if not self.cache_dir.exists():
                return
            for entry in self.cache_dir.iterdir():
                if entry.is_dir():
                    shutil.rmtree(entry)
                else:
                    entry.unlink(missing_ok=True)
        logger.info("Cleared artifact cache %s", self.cache_dir)

    def close(self) -> None:
        """Close the HTTP client if this resolver created it."""
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "ArtifactResolver":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _resolve_path(self, locator: str, raw_path: str) -> Path:
        path = Path(raw_path).expanduser()
        if not path.is_absolute():
            path = self.base_dir / path
        if not path.exists():
            raise ResolutionError(f"Artifact not found: {locator} ({path})")
        return path

    def _resolve_coordinate(self, locator: str, coordinate: Coordinate) -> Path:
        """
        Look a coordinate up in every repository, in order.

        Args:
            locator: Locator as given (for error messages)
            coordinate: Parsed coordinate

        Returns:
            Local path of the first hit

        Raises:
            ResolutionError: If no repository has the artifact
        """
        if not self.repositories:
            raise ResolutionError(
                f"Cannot resolve {locator}: no repositories configured"
            )

        failures = []
        for repository in self.repositories:
            if repository.startswith(("http://", "https://")):
                url = f"{repository.rstrip('/')}/{coordinate.repository_path}"
                try:
                    path = self._fetch(url)
                except ResolutionError as e:
                    logger.warning("Repository %s failed for %s: %s", repository, locator, e)
                    failures.append(f"{repository}: {e}")
                    continue
                if path is not None:
                    return path
                failures.append(f"{repository}: not found")
                continue

            root = repository
            if repository.startswith("file:"):
                try:
                    root = parse_locator(repository).path
                except LocatorError as e:
                    failures.append(f"{repository}: {e}")
                    continue
            root_path = Path(root).expanduser()
            if not root_path.is_absolute():
                root_path = self.base_dir / root_path
            candidate = root_path / coordinate.repository_path
            if candidate.exists():
                return candidate
            failures.append(f"{repository}: not found")

        raise ResolutionError(
            f"Artifact not found: {locator} (tried {'; '.join(failures)})"
        )

    def _fetch(self, url: str) -> Path | None:
        """
        Download a URL into the cache unless it is already there.

        Args:
            url: Remote artifact URL

        Returns:
            Cached path, or None if the server answered 404

        Raises:
            ResolutionError: On network failure or any other HTTP error
        """
        cache_file = self._cache_path(url)
        if cache_file.exists():
            logger.debug("Cache hit for %s", url)
            return cache_file

        cache_file.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=cache_file.parent, prefix=".download-", suffix=".part"
        )
        tmp_path = Path(tmp_name)
        logger.info("Downloading %s", url)
        try:
            with os.fdopen(fd, "wb") as f:
                with self._http().stream("GET", url) as response:
                    if response.status_code == 404:
                        return None
                    response.raise_for_status()
                    for chunk in response.iter_bytes():
                        f.write(chunk)
            os.replace(tmp_path, cache_file)
        except httpx.HTTPStatusError as e:
            raise ResolutionError(
                f"Failed to download {url}: HTTP {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, OSError) as e:
            raise ResolutionError(f"Failed to download {url}: {e}") from e
        finally:
            tmp_path.unlink(missing_ok=True)
            if not cache_file.exists() and not any(cache_file.parent.iterdir()):
                cache_file.parent.rmdir()

        return cache_file

    def _cache_path(self, url: str) -> Path:
        # One directory per URL keeps the downloaded file name and extension
        cache_key = hashlib.sha256(url.encode()).hexdigest()[:16]
        filename = Path(urlparse(url).path).name or "download"
        return self.cache_dir / cache_key / filename

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout, follow_redirects=True)
        return self._client
