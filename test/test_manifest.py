"""Tests of the version manifest and metadata resolution, against a local server.
"""

import hashlib
import json
import pytest

from launchcraft.manifest import VersionManifest, VersionNotFoundError, \
    ManifestParseError, IntegrityError


def _serve_manifest(http_server, versions, latest=None) -> VersionManifest:
    data = json.dumps({"latest": latest or {}, "versions": versions}).encode()
    url = http_server.add("/mc/game/version_manifest_v2.json", data)
    return VersionManifest(None, url)


def _serve_metadata(http_server, version: str, metadata: dict, sha1=None) -> dict:
    data = json.dumps(metadata).encode()
    url = http_server.add(f"/v1/packages/{version}.json", data)
    return {
        "id": version,
        "type": "release",
        "url": url,
        "sha1": hashlib.sha1(data).hexdigest() if sha1 is None else sha1,
    }


def test_resolve_version(http_server, tmp_path):

    metadata = {"id": "1.20.1", "mainClass": "net.minecraft.client.main.Main"}
    entry = _serve_metadata(http_server, "1.20.1", metadata)
    manifest = _serve_manifest(http_server, [entry])

    metadata_file = tmp_path / "versions" / "1.20.1.json"
    assert manifest.resolve_version("1.20.1", metadata_file) == metadata

    # The cached file is exactly the fetched document.
    assert hashlib.sha1(metadata_file.read_bytes()).hexdigest() == entry["sha1"]

    # Resolving again uses the cached file.
    assert manifest.resolve_version("1.20.1", metadata_file) == metadata
    assert http_server.count("/v1/packages/1.20.1.json") == 1


def test_resolve_version_not_found(http_server, tmp_path):

    entry = _serve_metadata(http_server, "1.20.1", {"id": "1.20.1"})
    manifest = _serve_manifest(http_server, [entry])

    with pytest.raises(VersionNotFoundError) as exc_info:
        manifest.resolve_version("1.20.2", tmp_path / "1.20.2.json")

    assert exc_info.value.version == "1.20.2"

    # Identifiers are case sensitive.
    with pytest.raises(VersionNotFoundError):
        manifest.resolve_version("1.20.1 ", tmp_path / "1.20.1.json")


def test_resolve_version_integrity(http_server, tmp_path):

    entry = _serve_metadata(http_server, "1.20.1", {"id": "1.20.1"}, sha1="0" * 40)
    manifest = _serve_manifest(http_server, [entry])

    metadata_file = tmp_path / "versions" / "1.20.1.json"
    with pytest.raises(IntegrityError):
        manifest.resolve_version("1.20.1", metadata_file)

    assert not metadata_file.exists()


def test_resolve_version_corrupted_cache(http_server, tmp_path):

    metadata = {"id": "1.20.1"}
    entry = _serve_metadata(http_server, "1.20.1", metadata)
    manifest = _serve_manifest(http_server, [entry])

    metadata_file = tmp_path / "1.20.1.json"
    metadata_file.write_text('{"id": "corrupted"}')

    assert manifest.resolve_version("1.20.1", metadata_file) == metadata
    assert json.loads(metadata_file.read_text()) == metadata


def test_resolve_version_malformed(http_server, tmp_path):

    data = b"{not json"
    url = http_server.add("/v1/packages/broken.json", data)
    manifest = _serve_manifest(http_server, [
        {"id": "broken", "url": url, "sha1": hashlib.sha1(data).hexdigest()}
    ])

    with pytest.raises(ManifestParseError):
        manifest.resolve_version("broken", tmp_path / "broken.json")

    # Also a value error, like other metadata errors.
    with pytest.raises(ValueError):
        manifest.resolve_version("broken", tmp_path / "broken.json")


def test_invalid_index_sha1(http_server):

    entry = _serve_metadata(http_server, "1.20.1", {"id": "1.20.1"})

    for sha1 in ("0" * 39, entry["sha1"].upper(), 42):
        manifest = _serve_manifest(http_server, [dict(entry, sha1=sha1)])
        with pytest.raises(ManifestParseError):
            manifest.get_version("1.20.1")

    # The sha1 is optional.
    manifest = _serve_manifest(http_server, [dict(entry, sha1=None)])
    assert manifest.get_version("1.20.1").sha1 is None


def test_first_version_wins(http_server):

    first = _serve_metadata(http_server, "dup", {"id": "dup"})
    second = dict(first, type="snapshot")
    manifest = _serve_manifest(http_server, [first, second])

    assert manifest.get_version("dup").type == "release"
    assert manifest.get_version("missing") is None
    assert [v.id for v in manifest.all_versions()] == ["dup", "dup"]


def test_filter_latest(http_server):

    manifest = _serve_manifest(http_server, [], latest={"release": "1.20.1", "snapshot": "23w31a"})

    assert manifest.filter_latest("release") == ("1.20.1", True)
    assert manifest.filter_latest("snapshot") == ("23w31a", True)
    assert manifest.filter_latest("1.19") == ("1.19", False)


def test_manifest_cache_fallback(http_server, tmp_path):

    cache_file = tmp_path / "version_manifest.json"
    entry = _serve_metadata(http_server, "1.20.1", {"id": "1.20.1"})
    manifest = _serve_manifest(http_server, [entry])
    manifest.cache_file = cache_file
    assert manifest.get_version("1.20.1") is not None
    assert cache_file.is_file()

    # Nothing listens on this port, the cached manifest is used.
    offline_manifest = VersionManifest(cache_file, "http://127.0.0.1:1/version_manifest.json")
    assert offline_manifest.get_version("1.20.1").url == entry["url"]


@pytest.mark.slow
def test_official_manifest(tmp_path):

    manifest = VersionManifest(tmp_path / "version_manifest.json")
    version, alias = manifest.filter_latest("release")
    assert alias

    metadata = manifest.resolve_version(version, tmp_path / "versions" / f"{version}.json")
    assert metadata["id"] == version
    assert "downloads" in metadata
