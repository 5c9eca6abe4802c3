"""Definition of the standard version installer and runner, it resolves the metadata
of a version, plans and downloads its files, installs native libraries and computes
the command line used to run the game.
"""

from subprocess import Popen
from pathlib import Path
import shutil
import time
import os

from .download import DownloadList, DownloadEntry, DownloadResult, DownloadResultError, \
    DownloadError, default_threads_count
from .plan import InstallPlan, plan_install, RESOURCES_URL
from .args import LaunchContext, build_command_line, session_features, format_jvm_options
from .auth import AuthSession, OfflineAuthSession
from .natives import install_natives, ExtractionError
from .manifest import VersionManifest
from .context import Context
from .util import jvm_bin_filename, is_sha1

from typing import Optional, Dict, List, Callable, Any


class Watcher:
    """Base class for a watcher of the install process.
    """

    def handle(self, event: Any) -> None:
        """Called when the watcher can handle the given event. Default implementation
        does nothing.
        """


class SimpleWatcher(Watcher):

    def __init__(self, handlers: Dict[type, Callable[[Any], None]]) -> None:
        self.handlers = handlers

    def handle(self, event: Any) -> None:
        handler = self.handlers.get(type(event))
        if handler is not None:
            handler(event)


class Environment:
    """Describe the game's environment needed to run it. Such instance is produced by
    installing a version and may be used to run the game.
    """

    def __init__(self, args: List[str], work_dir: Path) -> None:
        self.args = args
        self.work_dir = work_dir

    def run(self, runner: "Optional[Runner]" = None) -> int:
        """Run this game's environment, with an optional custom runner.

        :return: The exit code of the game's process.
        """
        return (runner or StandardRunner()).run(self)


class Runner:
    """Base class handling game running.
    """

    def run(self, env: Environment) -> int:
        raise NotImplementedError


class StandardRunner(Runner):
    """Default runner, it just creates a process that forwards its outputs to the
    outputs of the current process. This runner supports KeyboardInterrupt handling.
    """

    def run(self, env: Environment) -> int:
        env.work_dir.mkdir(parents=True, exist_ok=True)
        process = self.process_create(env.args, env.work_dir)
        return self.process_wait(process)

    def process_create(self, args: List[str], work_dir: Path) -> Popen:
        """This function is called when process needs to be created with the given
        arguments in the given working directory. The default implementation does nothing
        special but this can be used to create the process with enabled output piping,
        to later use in `process_wait`.
        """
        return Popen(args, cwd=work_dir)

    def process_wait(self, process: Popen) -> int:
        """This function is called with the running process for waiting the end of the
        process, its exit code is returned.
        """
        try:
            while process.poll() is None:
                time.sleep(1)
        except KeyboardInterrupt:
            process.kill()
            raise
        finally:
            process.wait()
        return process.returncode


class Version:
    """Base class for basic version resolving, it handles metadata parsing and resources
    resolution. This class provides support for standard versions as provided by the
    Mojang's version manifest.
    """

    def __init__(self, version: str, *,
        context: Optional[Context] = None,
        manifest: Optional[VersionManifest] = None
    ) -> None:
        """Construct a standard version installer and runner.

        :param version: The exact version identifier to install, aliases are not
        resolved here, see `VersionManifest.filter_latest`.
        :param context: The installation context of the game, used to know where to find
        its metadata and where to install resources. If the context is not given, the
        default one is constructed (see Context documentation).
        :param manifest: The version manifest used to find the version's metadata, by
        default the official one cached in the context's main directory.
        """

        self.version = version
        self.context = context or Context()
        self.manifest = manifest or VersionManifest(self.context.version_manifest_file)

        # General options
        self.auth_session: AuthSession = OfflineAuthSession()
        self.jvm_path: Path = Path(jvm_bin_filename)
        self.threads_count: Optional[int] = None
        self.resources_url = RESOURCES_URL

        # Launch options, memory sizes are given in MiB
        self.jvm_args: List[str] = []
        self.game_args: List[str] = []
        self.init_mem: Optional[int] = None
        self.max_mem: Optional[int] = None

        # Resolved metadata and installation plan
        self._metadata: dict = {}
        self._plan = InstallPlan()
        self._jar_path: Optional[Path] = None

        self._dl = DownloadList()

    def set_auth_offline(self, demo: bool = False) -> None:
        """Shortcut for setting an offline session.
        """
        self.auth_session = OfflineAuthSession(demo=demo)

    def install(self, *, watcher: Optional[Watcher] = None) -> Environment:
        """This function ensures that this version is properly installed given
        configuration of this class' attributes. This function can be called multiple
        time and will not download again what is already installed, if errors happen, the
        install can be resumed and the failed steps will be retried.

        :raises VersionNotFoundError: If the version is absent from the manifest.
        :raises IntegrityError: If the version metadata or assets index is corrupted.
        :raises ManifestParseError: If the metadata or assets index is malformed.
        :raises DownloadError: If some files failed to download.
        """

        watcher = watcher or Watcher()

        self._dl.clear()
        self._plan = InstallPlan(self._dl)

        self._resolve_metadata(watcher)
        self._resolve_jar(watcher)
        self._resolve_plan(watcher)
        self._download(watcher)
        self._install_natives(watcher)
        self._finalize_assets(watcher)

        return self._resolve_env(watcher)

    def _resolve_metadata(self, watcher: Watcher) -> None:
        """This step resolves the version's metadata through the manifest, the metadata
        is verified and cached in the versions directory.
        """

        watcher.handle(VersionLoadingEvent(self.version))
        self._metadata = self.manifest.resolve_version(self.version,
            self.context.version_metadata_file(self.version))
        watcher.handle(VersionLoadedEvent(self.version))

    def _resolve_jar(self, watcher: Watcher) -> None:
        """This step resolves the JAR file to use for launching the game.
        """
        self._jar_path = self.context.client_jar_file()
        self._add_jar_download("client", self._jar_path)
        watcher.handle(JarFoundEvent(self._jar_path))

    def _add_jar_download(self, kind: str, jar_path: Path) -> None:
        """Add the download of the given `/downloads/<kind>` entry to the given path. If
        no download entry is found, the JAR file must already exist.
        """

        version_dls = self._metadata.get("downloads")
        if version_dls is not None:

            if not isinstance(version_dls, dict):
                raise ValueError("metadata: /downloads must be an object")

            jar_dl = version_dls.get(kind)
            if jar_dl is not None:
                self._dl.add(parse_download_entry(jar_dl, jar_path, f"metadata: /downloads/{kind}"), verify=True)
                return

        # If no download entry has been found, but the JAR exists, we use it.
        if not jar_path.is_file():
            raise JarNotFoundError(kind)

    def _resolve_plan(self, watcher: Watcher) -> None:
        """Step resolving libraries and assets from version's metadata, the rules of
        libraries are interpreted against the running platform. Missing files are added
        to the download list.
        """

        watcher.handle(LibrariesResolvingEvent())

        self._plan = plan_install(self._metadata, self.context, self.version,
            features=session_features(self.auth_session),
            jobs=self._dl,
            resources_url=self.resources_url)

        watcher.handle(LibrariesResolvedEvent(
            len(self._plan.class_libs),
            len(self._plan.native_archives)))

        if self._plan.assets_index_name is not None:
            watcher.handle(AssetsResolveEvent(self._plan.assets_index_name, len(self._plan.assets)))

    def _download(self, watcher: Watcher) -> None:
        """Download all the entries of the plan, blocking until all are finished.

        :raises DownloadError: If any entry failed.
        """

        entries_count = len(self._dl)
        if not entries_count:
            return

        threads_count = self.threads_count or default_threads_count(entries_count)

        watcher.handle(DownloadStartEvent(threads_count, entries_count, self._dl.size))

        def callback(result_count: int, result: DownloadResult) -> None:
            watcher.handle(DownloadProgressEvent(result_count, result))

        results = self._dl.download_all(threads_count, callback)
        errors = [result for result in results if isinstance(result, DownloadResultError)]

        # If errors are present, raise an error.
        if len(errors):
            raise DownloadError(errors)

        # Clear entries if successful, therefore multiple calls can be chained if
        # needed, without re-downloading the same files.
        self._dl.clear()

        watcher.handle(DownloadCompleteEvent())

    def _install_natives(self, watcher: Watcher) -> None:
        """Extract native archives, only once all downloads are finished. Extraction
        errors don't stop the installation, they are given to the watcher.
        """

        if not len(self._plan.native_archives):
            return

        errors = install_natives(self._plan.native_archives, self.context.natives_dir(self.version))
        watcher.handle(NativesInstalledEvent(len(self._plan.native_archives), errors))

    def _finalize_assets(self, watcher: Watcher) -> None:
        """Step called after download to copy assets into the virtual directory, used by
        old versions.
        """

        virtual_dir = self._plan.assets_virtual_dir
        if virtual_dir is not None:
            for asset_id, asset_file in self._plan.assets.items():
                dst_file = virtual_dir / asset_id
                dst_file.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(str(asset_file), str(dst_file))

    def _resolve_env(self, watcher: Watcher) -> Environment:
        """Step for computing correct environment to run the game as configured in this
        version's instance.
        """

        assert self._jar_path is not None, "_resolve_jar() missing"

        game_dir = self.context.game_dir()
        game_dir.mkdir(parents=True, exist_ok=True)

        classpath = os.pathsep.join(str(path) for path in [*self._plan.class_libs, self._jar_path])

        version_type = self._metadata.get("type", "release")
        if not isinstance(version_type, str):
            raise ValueError("metadata: /type must be a string")

        context = LaunchContext(
            self.version,
            classpath,
            game_dir,
            self.context.assets_dir,
            self.context.natives_dir(self.version),
            self.auth_session,
            libraries_dir=self.context.libraries_dir,
            assets_index_name=self._plan.assets_index_name,
            version_type=version_type,
            assets_virtual_dir=self._plan.assets_virtual_dir,
            jvm_args=self.jvm_args,
            game_args=self.game_args,
            init_mem=self.init_mem,
            max_mem=self.max_mem)

        args = build_command_line(self._metadata, context)
        return Environment([str(self.jvm_path), *args], game_dir)


class ServerVersion(Version):
    """A server version, only the server JAR is installed into the server directory of
    the instance, with an accepted EULA.
    """

    def _resolve_jar(self, watcher: Watcher) -> None:
        self._jar_path = self.context.server_dir() / "server.jar"
        self._add_jar_download("server", self._jar_path)
        watcher.handle(JarFoundEvent(self._jar_path))

    def _resolve_plan(self, watcher: Watcher) -> None:
        pass  # The server JAR bundles its libraries.

    def _resolve_env(self, watcher: Watcher) -> Environment:

        assert self._jar_path is not None, "_resolve_jar() missing"

        server_dir = self._jar_path.parent
        server_dir.mkdir(parents=True, exist_ok=True)

        eula_file = server_dir / "eula.txt"
        with eula_file.open("wt") as eula_fp:
            eula_fp.write("eula = true\n")

        watcher.handle(EulaWrittenEvent(eula_file))

        jvm_options = format_jvm_options(self.jvm_args, self.init_mem, self.max_mem)
        return Environment([
            str(self.jvm_path),
            *jvm_options,
            "-jar", self._jar_path.name, "nogui",
            *self.game_args
        ], server_dir)


def parse_download_entry(value: Any, dst: Path, path: str) -> DownloadEntry:
    """Parse a download entry of the metadata, giving the URL and optional sha1 and
    size of the file.
    """

    if not isinstance(value, dict):
        raise ValueError(f"{path} must be an object")

    url = value.get("url")
    if not isinstance(url, str):
        raise ValueError(f"{path}/url must be a string")

    size = value.get("size")
    if size is not None and not isinstance(size, int):
        raise ValueError(f"{path}/size must be an integer")

    sha1 = value.get("sha1")
    if sha1 is not None and not is_sha1(sha1):
        raise ValueError(f"{path}/sha1 must be a 40 characters lowercase hex string")

    return DownloadEntry(url, dst, size=size, sha1=sha1, name=dst.name)


class JarNotFoundError(Exception):
    """Raised when no JAR file can be found or downloaded for the version, the kind of
    JAR is given, client or server.
    """

    def __init__(self, kind: str) -> None:
        self.kind = kind

    def __str__(self) -> str:
        return self.kind


class VersionEvent:
    """Base class for events regarding version.
    """
    __slots__ = "version",
    def __init__(self, version: str) -> None:
        self.version = version

class VersionLoadingEvent(VersionEvent):
    """Event triggered when a version is being loaded.
    """
    __slots__ = tuple()

class VersionLoadedEvent(VersionEvent):
    """Event triggered when a version has been successfully loaded.
    """
    __slots__ = tuple()

class JarFoundEvent:
    """Event triggered when the game's JAR file has been found.
    """
    __slots__ = "path",
    def __init__(self, path: Path) -> None:
        self.path = path

class AssetsResolveEvent:
    __slots__ = "index_version", "count"
    def __init__(self, index_version: str, count: int) -> None:
        self.index_version = index_version
        self.count = count

class LibrariesResolvingEvent:
    """Event triggered when libraries start being resolved.
    """
    __slots__ = tuple()

class LibrariesResolvedEvent:
    """Event triggered when all libraries has been successfully resolved.
    """
    __slots__ = "class_libs_count", "native_libs_count"
    def __init__(self, class_libs_count: int, native_libs_count: int) -> None:
        self.class_libs_count = class_libs_count
        self.native_libs_count = native_libs_count

class DownloadStartEvent:
    __slots__ = "threads_count", "entries_count", "size"
    def __init__(self, threads_count: int, entries_count: int, size: int) -> None:
        self.threads_count = threads_count
        self.entries_count = entries_count
        self.size = size

class DownloadProgressEvent:
    __slots__ = "count", "result"
    def __init__(self, count: int, result: DownloadResult) -> None:
        self.count = count
        self.result = result

class DownloadCompleteEvent:
    __slots__ = tuple()

class NativesInstalledEvent:
    """Event triggered when native archives have been extracted, errors of archives that
    failed to be extracted are given.
    """
    __slots__ = "count", "errors"
    def __init__(self, count: int, errors: List[ExtractionError]) -> None:
        self.count = count
        self.errors = errors

class EulaWrittenEvent:
    __slots__ = "path",
    def __init__(self, path: Path) -> None:
        self.path = path
