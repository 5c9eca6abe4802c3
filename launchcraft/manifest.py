"""Management of the official Mojang's version manifest, the global index of versions.
It's used to find a version's metadata and to download it with sha1 verification.
"""

from json import JSONDecodeError
from pathlib import Path
import json

from .http import http_get, HttpError
from .util import calc_file_sha1, is_sha1, IntegrityError

from typing import Optional, Tuple, List, Any


__all__ = ["VersionIndexEntry", "VersionManifest", "VersionNotFoundError",
    "ManifestParseError", "IntegrityError", "VERSION_MANIFEST_URL"]


VERSION_MANIFEST_URL = "https://piston-meta.mojang.com/mc/game/version_manifest_v2.json"


class VersionIndexEntry:
    """A version of the manifest, giving the URL of its metadata and the expected sha1
    of this metadata.
    """

    __slots__ = "id", "url", "sha1", "type"

    def __init__(self, id: str, url: str, sha1: Optional[str], type: str = "release") -> None:
        self.id = id
        self.url = url
        self.sha1 = sha1
        self.type = type

    @classmethod
    def from_dict(cls, value: Any, path: str) -> "VersionIndexEntry":

        if not isinstance(value, dict):
            raise ManifestParseError(f"{path} must be an object")

        id = value.get("id")
        if not isinstance(id, str):
            raise ManifestParseError(f"{path}/id must be a string")

        url = value.get("url")
        if not isinstance(url, str):
            raise ManifestParseError(f"{path}/url must be a string")

        sha1 = value.get("sha1")
        if sha1 is not None and not is_sha1(sha1):
            raise ManifestParseError(f"{path}/sha1 must be a 40 characters lowercase hex string")

        return cls(id, url, sha1, value.get("type", "release"))

    def __repr__(self) -> str:
        return f"<VersionIndexEntry {self.id}>"


class VersionManifest:
    """The Mojang's official version manifest. Providing officially available versions
    with optional cache file. The manifest changes frequently, so it's always requested
    once for each instance of this class, the cache is only used if the network fails.
    """

    def __init__(self, cache_file: Optional[Path] = None, url: str = VERSION_MANIFEST_URL) -> None:
        self.data: Optional[dict] = None
        self.cache_file = cache_file
        self.url = url

    def _ensure_data(self) -> dict:
        """Internal method that ensure that the manifest data is up-to-date.

        :return: The full data of the manifest.
        :raises HttpError: Underlying HTTP error if manifest could not be requested.
        :raises ManifestParseError: If the manifest is not a valid JSON object.
        """

        if self.data is None:

            headers = {}
            cache_data = None

            # If a cache file should be used, try opening it and read the last modified
            # time that will be used for requesting the manifest, only if needed.
            if self.cache_file is not None:
                try:
                    with self.cache_file.open("rt") as cache_fp:
                        cache_data = json.load(cache_fp)
                    if not isinstance(cache_data, dict):
                        cache_data = None
                    elif "last_modified" in cache_data:
                        headers["If-Modified-Since"] = cache_data["last_modified"]
                except (OSError, JSONDecodeError):
                    pass

            try:

                res = http_get(self.url, headers=headers, accept="application/json")

                data = parse_json_object(res.data, "version manifest")

                if "Last-Modified" in res.headers:
                    data["last_modified"] = res.headers["Last-Modified"]

                if self.cache_file is not None:
                    self.cache_file.parent.mkdir(parents=True, exist_ok=True)
                    with self.cache_file.open("wt") as cache_fp:
                        json.dump(data, cache_fp)

                self.data = data

            except HttpError as error:
                # Checking for 0, which means network error, in such case we want to
                # ignore the network error and just use the cached data.
                if error.res.status in (0, 304) and cache_data is not None:
                    self.data = cache_data
                else:
                    raise

        return self.data

    def is_alias(self, version: str) -> bool:
        """Basic function that returns true if the given version is an release or
        snapshot alias.
        """
        return version in ("release", "snapshot")

    def filter_latest(self, version: str) -> Tuple[str, bool]:
        """Filter a version identifier if 'release' or 'snapshot' alias is used, then it's
        replaced by the full version identifier, like `1.19.3`.

        :param version: The version id or alias.
        :return: A tuple containing the full version id and a boolean indicating if the
        given version identifier is an alias.
        """

        if self.is_alias(version):
            latest = self._ensure_data().get("latest", {}).get(version)
            if latest is not None:
                return latest, True
        return version, False

    def all_versions(self) -> List[VersionIndexEntry]:
        """Return all versions of the manifest, in the manifest's order.
        """

        versions = self._ensure_data().get("versions")
        if not isinstance(versions, list):
            raise ManifestParseError("version manifest: /versions must be a list")

        return [VersionIndexEntry.from_dict(v, f"version manifest: /versions/{i}") for i, v in enumerate(versions)]

    def get_version(self, version: str) -> Optional[VersionIndexEntry]:
        """Get a manifest's version entry, the identifier must match exactly, the first
        matching version is returned.

        :param version: The version identifier.
        :return: If found, the version is returned.
        :raises HttpError: Underlying HTTP error if manifest could not be requested.
        """
        for version_entry in self.all_versions():
            if version_entry.id == version:
                return version_entry
        return None

    def resolve_version(self, version: str, metadata_file: Path) -> dict:
        """Resolve the metadata of the given version, the metadata is cached in the given
        file. If the file already exists and its sha1 matches the expected one, it is
        loaded without fetching it.

        :param version: The exact version identifier.
        :param metadata_file: The file where the metadata is cached.
        :return: The metadata document.
        :raises VersionNotFoundError: If the version is absent from the manifest.
        :raises IntegrityError: If the fetched metadata doesn't match the expected sha1,
        in such case the metadata file is not written.
        :raises ManifestParseError: If the metadata is not a valid JSON object.
        :raises HttpError: Underlying HTTP error if a request fails.
        """

        entry = self.get_version(version)
        if entry is None:
            raise VersionNotFoundError(version)

        if entry.sha1 is not None:
            try:
                if calc_file_sha1(metadata_file) == entry.sha1:
                    with metadata_file.open("rb") as metadata_fp:
                        return parse_json_object(metadata_fp.read(), f"version {version}")
            except OSError:
                pass  # Not cached yet, or not readable, fetch it.

        res = http_get(entry.url, accept="application/json", sha1=entry.sha1)

        # First decode the data, raising if invalid, before writing it to the cache.
        metadata = parse_json_object(res.data, f"version {version}")

        metadata_file.parent.mkdir(parents=True, exist_ok=True)
        with metadata_file.open("wb") as metadata_fp:
            metadata_fp.write(res.data)

        return metadata


def parse_json_object(data: bytes, what: str) -> dict:
    """Parse the given raw data as a JSON object, raising `ManifestParseError` if the
    data is malformed or not an object.
    """

    try:
        value = json.loads(data)
    except (JSONDecodeError, UnicodeDecodeError) as error:
        raise ManifestParseError(f"{what}: {error}")

    if not isinstance(value, dict):
        raise ManifestParseError(f"{what}: / must be an object")

    return value


class VersionNotFoundError(Exception):
    """Raised when a version was not found. The version that was not found is given.
    """
    def __init__(self, version: str) -> None:
        self.version = version

    def __str__(self) -> str:
        return repr(self.version)


class ManifestParseError(ValueError):
    """Raised when a manifest, version metadata or assets index is malformed.
    """
