"""
Tests for Artifact Resolution.

This test suite covers:
1. Locator classification (paths, file: URLs, http URLs, coordinates)
2. Local path resolution
3. Coordinate lookup in local repositories
4. Downloads through a mocked HTTP transport
5. Cache behaviour (single fetch, atomic writes, clearing)
"""

import httpx
import pytest

from modhost.resolver import (
    ArtifactResolver,
    Coordinate,
    LocatorError,
    LocatorKind,
    ResolutionError,
    parse_locator,
)


def mock_client(routes: dict[str, httpx.Response], calls: list[str]) -> httpx.Client:
    """httpx client answering from a route table; unknown URLs are 404."""

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        calls.append(url)
        return routes.get(url, httpx.Response(404))

    return httpx.Client(transport=httpx.MockTransport(handler))


class TestLocatorParsing:
    """Test locator classification."""

    def test_relative_and_absolute_paths(self):
        """Plain strings without a scheme are paths."""
        parsed = parse_locator("modules/greeter.py")
        assert parsed.kind is LocatorKind.PATH
        assert parsed.path == "modules/greeter.py"

        assert parse_locator("/opt/ext.zip").kind is LocatorKind.PATH

    def test_windows_drive_is_path(self):
        """A drive letter is not a URL scheme."""
        parsed = parse_locator("C:\\modules\\ext.zip")
        assert parsed.kind is LocatorKind.PATH

    def test_file_url(self):
        """file: URLs become local paths."""
        assert parse_locator("file:///opt/ext.zip").path == "/opt/ext.zip"
        assert parse_locator("file:/opt/ext.zip").path == "/opt/ext.zip"
        assert parse_locator("file://localhost/opt/ext.zip").path == "/opt/ext.zip"

    def test_file_url_remote_host_rejected(self):
        with pytest.raises(LocatorError, match="Remote host"):
            parse_locator("file://server/share/ext.zip")

    def test_http_url(self):
        parsed = parse_locator("https://repo.example.com/ext.zip")
        assert parsed.kind is LocatorKind.URL
        assert parsed.url == "https://repo.example.com/ext.zip"

    def test_coordinate(self):
        """group:artifact:version defaults to a zip artifact."""
        parsed = parse_locator("org.example:web:1.0.0")
        assert parsed.kind is LocatorKind.COORDINATE
        assert parsed.coordinate == Coordinate("org.example", "web", "1.0.0")
        assert parsed.coordinate.repository_path == "org/example/web/1.0.0/web-1.0.0.zip"

    def test_coordinate_with_type_and_classifier(self):
        coordinate = parse_locator("org.example:web:1.0.0:whl:py3").coordinate
        assert coordinate.filename == "web-1.0.0-py3.whl"

    def test_single_letter_group_is_coordinate(self):
        """A one-letter group must not be mistaken for a drive."""
        assert parse_locator("a:web:1.0").kind is LocatorKind.COORDINATE

    def test_mvn_coordinate(self):
        coordinate = parse_locator("mvn:org.example/web/2.0/jar").coordinate
        assert coordinate.group == "org.example"
        assert coordinate.version == "2.0"
        assert coordinate.type == "jar"

    def test_invalid_locators(self):
        """Empty, malformed and unsupported locators are rejected."""
        with pytest.raises(LocatorError, match="Empty"):
            parse_locator("  ")
        with pytest.raises(LocatorError, match="Malformed"):
            parse_locator("org.example:web")
        with pytest.raises(LocatorError, match="Malformed"):
            parse_locator("mvn:org.example/web")
        with pytest.raises(LocatorError, match="Unsupported"):
            parse_locator("ftp://host/ext.zip")


class TestLocalResolution:
    """Test path and local repository resolution."""

    def test_relative_path_resolves_against_base(self, tmp_path):
        (tmp_path / "greeter.py").write_text("x = 1\n")
        resolver = ArtifactResolver(cache_dir=tmp_path / "cache", base_dir=tmp_path)

        artifact = resolver.resolve("greeter.py")

        assert artifact.path == tmp_path / "greeter.py"
        assert artifact.locator == "greeter.py"

    def test_missing_path(self, tmp_path):
        resolver = ArtifactResolver(cache_dir=tmp_path / "cache", base_dir=tmp_path)
        with pytest.raises(ResolutionError, match="not found"):
            resolver.resolve("missing.zip")

    def test_malformed_locator_is_resolution_error(self, tmp_path):
        resolver = ArtifactResolver(cache_dir=tmp_path / "cache", base_dir=tmp_path)
        with pytest.raises(ResolutionError):
            resolver.resolve("org.example:web")

    def test_coordinate_in_local_repository(self, tmp_path):
        """Repositories are tried in order until one has the artifact."""
        first = tmp_path / "first"
        second = tmp_path / "second"
        target = second / "org" / "example" / "web" / "1.0.0" / "web-1.0.0.zip"
        target.parent.mkdir(parents=True)
        target.write_bytes(b"zip")
        first.mkdir()

        resolver = ArtifactResolver(
            cache_dir=tmp_path / "cache",
            repositories=[str(first), second.as_uri()],
            base_dir=tmp_path,
        )

        assert resolver.resolve("org.example:web:1.0.0").path == target

    def test_coordinate_without_repositories(self, tmp_path):
        resolver = ArtifactResolver(cache_dir=tmp_path / "cache", base_dir=tmp_path)
        with pytest.raises(ResolutionError, match="no repositories"):
            resolver.resolve("org.example:web:1.0.0")

    def test_coordinate_not_in_any_repository(self, tmp_path):
        resolver = ArtifactResolver(
            cache_dir=tmp_path / "cache",
            repositories=[str(tmp_path)],
            base_dir=tmp_path,
        )
        with pytest.raises(ResolutionError, match="Artifact not found"):
            resolver.resolve("org.example:web:1.0.0")


class TestRemoteResolution:
    """Test downloads through httpx.MockTransport."""

    def test_download_once(self, tmp_path):
        """A remote artifact is fetched once and then served from the cache."""
        url = "https://repo.example.com/ext/web.zip"
        calls = []
        client = mock_client({url: httpx.Response(200, content=b"payload")}, calls)
        resolver = ArtifactResolver(cache_dir=tmp_path / "cache", client=client)

        first = resolver.resolve(url)
        second = resolver.resolve(url)

        assert first.path.read_bytes() == b"payload"
        assert first.path.name == "web.zip"
        assert second.path == first.path
        assert calls == [url]
        assert resolver.is_cached(url)

    def test_cache_shared_between_resolvers(self, tmp_path):
        """A new resolver over the same cache directory does not re-download."""
        url = "https://repo.example.com/ext/web.zip"
        calls = []
        routes = {url: httpx.Response(200, content=b"payload")}

        ArtifactResolver(
            cache_dir=tmp_path / "cache", client=mock_client(routes, calls)
        ).resolve(url)
        ArtifactResolver(
            cache_dir=tmp_path / "cache", client=mock_client(routes, calls)
        ).resolve(url)

        assert calls == [url]

    def test_not_found_url(self, tmp_path):
        calls = []
        resolver = ArtifactResolver(
            cache_dir=tmp_path / "cache", client=mock_client({}, calls)
        )
        with pytest.raises(ResolutionError, match="Artifact not found"):
            resolver.resolve("https://repo.example.com/missing.zip")
        assert list((tmp_path / "cache").iterdir()) == []

    def test_http_repository_miss_falls_through(self, tmp_path):
        """A 404 from one repository moves on to the next."""
        local = tmp_path / "local"
        target = local / "org" / "example" / "web" / "1.0.0" / "web-1.0.0.zip"
        target.parent.mkdir(parents=True)
        target.write_bytes(b"zip")
        calls = []

        resolver = ArtifactResolver(
            cache_dir=tmp_path / "cache",
            repositories=["https://repo.example.com/maven", str(local)],
            base_dir=tmp_path,
            client=mock_client({}, calls),
        )

        assert resolver.resolve("org.example:web:1.0.0").path == target
        assert calls == [
            "https://repo.example.com/maven/org/example/web/1.0.0/web-1.0.0.zip"
        ]

    def test_http_repository_hit(self, tmp_path):
        url = "https://repo.example.com/maven/org/example/web/1.0.0/web-1.0.0.zip"
        calls = []
        resolver = ArtifactResolver(
            cache_dir=tmp_path / "cache",
            repositories=["https://repo.example.com/maven/"],
            client=mock_client({url: httpx.Response(200, content=b"zip")}, calls),
        )

        artifact = resolver.resolve("mvn:org.example/web/1.0.0")

        assert artifact.path.read_bytes() == b"zip"
        assert calls == [url]

    def test_failed_download_leaves_no_file(self, tmp_path):
        """Server errors raise and leave the cache without partial files."""
        url = "https://repo.example.com/ext/web.zip"
        calls = []
        cache = tmp_path / "cache"
        resolver = ArtifactResolver(
            cache_dir=cache,
            client=mock_client({url: httpx.Response(500)}, calls),
        )

        with pytest.raises(ResolutionError, match="HTTP 500"):
            resolver.resolve(url)

        assert not resolver.is_cached(url)
        assert list(cache.iterdir()) == []

    def test_transport_error(self, tmp_path):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        resolver = ArtifactResolver(
            cache_dir=tmp_path / "cache",
            client=httpx.Client(transport=httpx.MockTransport(handler)),
        )
        with pytest.raises(ResolutionError, match="connection refused"):
            resolver.resolve("https://repo.example.com/ext/web.zip")

    def test_clear_cache(self, tmp_path):
        url = "https://repo.example.com/ext/web.zip"
        calls = []
        resolver = ArtifactResolver(
            cache_dir=tmp_path / "cache",
            client=mock_client({url: httpx.Response(200, content=b"payload")}, calls),
        )
        resolver.resolve(url)

        resolver.clear_cache()

        assert not resolver.is_cached(url)
        resolver.resolve(url)
        assert calls == [url, url]
