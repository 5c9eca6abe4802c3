"""Planning of the files to install for a version: libraries, native libraries and
assets objects. Planning only fills a download list, nothing is downloaded here except
the assets index, which is needed to know the objects to download.
"""

from pathlib import Path

from .download import DownloadList, DownloadEntry
from .manifest import parse_json_object, ManifestParseError
from .context import Context
from .rule import Rule, parse_rules, interpret_rules
from .http import http_get
from .util import is_sha1
from . import rule

from typing import Optional, Dict, List, Any


RESOURCES_URL = "http://resources.download.minecraft.net/"


class LibraryDescriptor:
    """A library of the version metadata that can be downloaded for the running
    platform, natives libraries are flagged and will be extracted once downloaded.
    """

    __slots__ = "name", "artifact_path", "url", "sha1", "size", "natives", "rules"

    def __init__(self,
        name: str,
        artifact_path: str,
        url: str, *,
        sha1: Optional[str] = None,
        size: Optional[int] = None,
        natives: bool = False,
        rules: Optional[List[Rule]] = None
    ) -> None:
        self.name = name
        self.artifact_path = artifact_path
        self.url = url
        self.sha1 = sha1
        self.size = size
        self.natives = natives
        self.rules = [] if rules is None else rules

    @classmethod
    def from_dict(cls, value: Any, path: str) -> Optional["LibraryDescriptor"]:
        """Parse a library from its metadata object. If the library has no artifact to
        download for the running platform, like metadata-only libraries, None is
        returned.
        """

        if not isinstance(value, dict):
            raise ValueError(f"{path} must be an object")

        name = value.get("name")
        if not isinstance(name, str):
            raise ValueError(f"{path}/name must be a string")

        rules = parse_rules(value.get("rules", []), f"{path}/rules")

        downloads = value.get("downloads", {})
        if not isinstance(downloads, dict):
            raise ValueError(f"{path}/downloads must be an object")

        artifact = downloads.get("artifact")
        artifact_path = f"{path}/downloads/artifact"
        natives = False

        # Old versions put natives in classifiers, the classifier is selected from the
        # natives mapping of the current OS.
        natives_mapping = value.get("natives")
        if natives_mapping is not None:

            if not isinstance(natives_mapping, dict):
                raise ValueError(f"{path}/natives must be an object")

            classifier = natives_mapping.get(rule.minecraft_os)
            if classifier is None:
                # No natives for the running OS, the library is useless.
                return None
            elif not isinstance(classifier, str):
                raise ValueError(f"{path}/natives/{rule.minecraft_os} must be a string")

            classifier = classifier.replace("${arch}", str(rule.minecraft_arch_bits))
            classifiers = downloads.get("classifiers", {})
            if not isinstance(classifiers, dict):
                raise ValueError(f"{path}/downloads/classifiers must be an object")

            if classifier in classifiers:
                artifact = classifiers[classifier]
                artifact_path = f"{path}/downloads/classifiers/{classifier}"

            natives = True

        if artifact is None:
            return None
        elif not isinstance(artifact, dict):
            raise ValueError(f"{artifact_path} must be an object")

        url = artifact.get("url")
        if not isinstance(url, str):
            raise ValueError(f"{artifact_path}/url must be a string")

        lib_path = artifact.get("path")
        if not isinstance(lib_path, str):
            raise ValueError(f"{artifact_path}/path must be a string")

        sha1 = artifact.get("sha1")
        if sha1 is not None and not is_sha1(sha1):
            raise ValueError(f"{artifact_path}/sha1 must be a 40 characters lowercase hex string")

        size = artifact.get("size")
        if size is not None and not isinstance(size, int):
            raise ValueError(f"{artifact_path}/size must be an integer")

        return cls(name, lib_path, url, sha1=sha1, size=size, natives=natives, rules=rules)

    def __repr__(self) -> str:
        return f"<LibraryDescriptor {self.name}>"


class InstallPlan:
    """The result of planning a version's installation. The download list contains all
    jobs that are needed, files already present are not scheduled but natives archives
    and class libraries are all recorded.
    """

    __slots__ = "jobs", "native_archives", "class_libs", "assets", "assets_index_name", \
        "assets_virtual_dir"

    def __init__(self, jobs: Optional[DownloadList] = None) -> None:
        self.jobs = DownloadList() if jobs is None else jobs
        self.native_archives: List[Path] = []
        self.class_libs: List[Path] = []
        self.assets: Dict[str, Path] = {}
        self.assets_index_name: Optional[str] = None
        self.assets_virtual_dir: Optional[Path] = None

    def __repr__(self) -> str:
        return f"<InstallPlan jobs={len(self.jobs)} natives={len(self.native_archives)}>"


def parse_libraries(metadata: dict) -> List[LibraryDescriptor]:
    """Parse all libraries of the given version metadata, libraries without artifact for
    the running platform are skipped. Rules are not evaluated.
    """

    libraries = metadata.get("libraries", [])
    if not isinstance(libraries, list):
        raise ValueError("metadata: /libraries must be a list")

    descriptors = []
    for i, library in enumerate(libraries):
        descriptor = LibraryDescriptor.from_dict(library, f"metadata: /libraries/{i}")
        if descriptor is not None:
            descriptors.append(descriptor)

    return descriptors


def plan_libraries(metadata: dict,
    libraries_dir: Path,
    natives_dir: Path,
    plan: InstallPlan, *,
    features: Optional[Dict[str, bool]] = None
) -> None:
    """Plan the libraries of the given metadata into the plan. Natives libraries are
    downloaded into the natives directory, others in the libraries directory.
    """

    for library in parse_libraries(metadata):

        if not interpret_rules(library.rules, features):
            continue

        if library.natives:
            dst = natives_dir / library.artifact_path
        else:
            dst = libraries_dir / library.artifact_path

        plan.jobs.add(DownloadEntry(library.url, dst,
            size=library.size,
            sha1=library.sha1,
            name=library.name), verify=True)

        # Existing natives are recorded anyway, extracting them again is harmless.
        if library.natives:
            if dst not in plan.native_archives:
                plan.native_archives.append(dst)
        elif dst not in plan.class_libs:
            plan.class_libs.append(dst)


def plan_assets(metadata: dict,
    assets_dir: Path,
    version: str,
    plan: InstallPlan, *,
    resources_url: str = RESOURCES_URL
) -> None:
    """Plan the assets objects of the given metadata into the plan. The assets index is
    fetched if not already cached in `assets/indexes/<version>.json`, a cached index is
    trusted as is.

    :raises ManifestParseError: If the assets index is malformed.
    :raises IntegrityError: If the fetched index doesn't match the expected sha1.
    :raises HttpError: If the assets index can't be fetched.
    """

    assets_index_info = metadata.get("assetIndex")
    if assets_index_info is None:
        return  # Very old versions have no assets.
    elif not isinstance(assets_index_info, dict):
        raise ValueError("metadata: /assetIndex must be an object")

    index_file = assets_dir / "indexes" / f"{version}.json"
    what = f"assets index {version}"

    try:
        with index_file.open("rb") as index_fp:
            assets_index = parse_json_object(index_fp.read(), what)
    except FileNotFoundError:

        url = assets_index_info.get("url")
        if not isinstance(url, str):
            raise ValueError("metadata: /assetIndex/url must be a string")

        sha1 = assets_index_info.get("sha1")
        if sha1 is not None and not is_sha1(sha1):
            raise ValueError("metadata: /assetIndex/sha1 must be a 40 characters lowercase hex string")

        res = http_get(url, accept="application/json", sha1=sha1)

        assets_index = parse_json_object(res.data, what)

        index_file.parent.mkdir(parents=True, exist_ok=True)
        with index_file.open("wb") as index_fp:
            index_fp.write(res.data)

    objects = assets_index.get("objects")
    if not isinstance(objects, dict):
        raise ManifestParseError(f"{what}: /objects must be an object")

    objects_dir = assets_dir / "objects"

    for asset_id, asset_obj in objects.items():

        if not isinstance(asset_obj, dict):
            raise ManifestParseError(f"{what}: /objects/{asset_id} must be an object")

        asset_hash = asset_obj.get("hash")
        if not is_sha1(asset_hash):
            raise ManifestParseError(f"{what}: /objects/{asset_id}/hash must be a 40 characters lowercase hex string")

        asset_size = asset_obj.get("size")
        if asset_size is not None and not isinstance(asset_size, int):
            raise ManifestParseError(f"{what}: /objects/{asset_id}/size must be an integer")

        asset_hash_prefix = asset_hash[:2]
        dst = objects_dir / asset_hash_prefix / asset_hash

        plan.jobs.add(DownloadEntry(f"{resources_url}{asset_hash_prefix}/{asset_hash}", dst,
            size=asset_size,
            sha1=asset_hash,
            name=asset_id), verify=True)

        plan.assets[asset_id] = dst

    plan.assets_index_name = version

    if assets_index.get("virtual", False) or assets_index.get("map_to_resources", False):
        plan.assets_virtual_dir = assets_dir / "virtual" / version


def plan_install(metadata: dict, context: Context, version: str, *,
    features: Optional[Dict[str, bool]] = None,
    jobs: Optional[DownloadList] = None,
    resources_url: str = RESOURCES_URL
) -> InstallPlan:
    """Plan the whole installation of libraries and assets of the given version.

    :param metadata: The version metadata.
    :param context: The installation context giving directories.
    :param version: The version identifier, used for natives and assets index paths.
    :param features: Features used to evaluate libraries' rules.
    :param jobs: An optional download list to fill, a new one is created by default.
    :return: The installation plan.
    """

    plan = InstallPlan(jobs)
    plan_libraries(metadata, context.libraries_dir, context.natives_dir(version), plan,
        features=features)
    plan_assets(metadata, context.assets_dir, version, plan,
        resources_url=resources_url)
    return plan

