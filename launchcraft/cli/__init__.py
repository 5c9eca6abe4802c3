"""Main entry point of the command line interface.
"""

from pathlib import Path
import socket
import sys

from .parse import register_arguments, RootNs, SearchNs, InstallNs, StartNs
from .output import Output
from .util import format_number, format_command_line
from .lang import get as _

from ..download import DownloadError, DownloadResultSuccess, IntegrityError
from ..manifest import VersionManifest, VersionNotFoundError, ManifestParseError
from ..context import Context
from ..auth import OfflineAuthSession
from ..http import HttpError
from ..standard import Version, ServerVersion, Environment, SimpleWatcher, JarNotFoundError, \
    VersionLoadingEvent, VersionLoadedEvent, JarFoundEvent, \
    LibrariesResolvingEvent, LibrariesResolvedEvent, AssetsResolveEvent, \
    DownloadStartEvent, DownloadProgressEvent, DownloadCompleteEvent, \
    NativesInstalledEvent, EulaWrittenEvent

from typing import cast, Optional, List, Dict, Callable, Any


EXIT_OK = 0
EXIT_FAILURE = 1

CommandHandler = Callable[[Any], Optional[int]]


def main(args: Optional[List[str]] = None):
    """Main entry point of the CLI. This function parses the input arguments and try to
    find a command handler to dispatch to. These command handlers are specified by the
    `get_command_handlers` function.
    """

    parser = register_arguments()
    ns: RootNs = cast(RootNs, parser.parse_args(args or sys.argv[1:]))

    # Setup common objects in the namespace.
    ns.out = get_output(ns.out_kind)
    ns.context = Context(ns.main_dir, ns.work_dir)
    ns.version_manifest = VersionManifest(ns.context.version_manifest_file)
    socket.setdefaulttimeout(ns.timeout)

    handler = get_command_handlers().get(ns.subcommand)
    if handler is None:
        parser.print_help()
        sys.exit(EXIT_FAILURE)

    sys.exit(cmd(handler, ns))


def get_output(kind: str) -> Output:
    """Internal function that construct the output depending on its kind.
    The kind is constrained by choices set to the arguments parser.
    """

    if kind == "human-color":
        return Output(True)
    elif kind == "human":
        return Output(False)
    else:
        raise ValueError()


def get_command_handlers() -> Dict[str, CommandHandler]:
    """Internal function returns the command handlers for each subcommand of the CLI
    argument parser.
    """

    return {
        "search": cmd_search,
        "install": cmd_install,
        "start": cmd_start,
    }


def cmd(handler: CommandHandler, ns: RootNs) -> int:
    """Generic command handler that launch the given handler with the given namespace,
    it handles error in order to pretty print them. The exit code is returned.
    """

    try:
        code = handler(ns)
        return EXIT_OK if code is None else code

    except VersionNotFoundError as error:
        ns.out.task("FAILED", "start.version.not_found", version=error.version)
        ns.out.finish()

    except JarNotFoundError as error:
        ns.out.task("FAILED", "start.jar.not_found", kind=error.kind)
        ns.out.finish()

    except DownloadError as error:
        ns.out.task("FAILED", None)
        ns.out.finish()
        for result in error.errors:
            ns.out.task(None, "download.error", name=result.entry.name, message=_(f"download.error.{result.code}"))
            ns.out.finish()

    except IntegrityError as error:
        ns.out.task("FAILED", "error.integrity", message=str(error))
        ns.out.finish()

    except ManifestParseError as error:
        ns.out.task("FAILED", "error.parse", message=str(error))
        ns.out.finish()

    except HttpError as error:
        ns.out.task("FAILED", "error.http", message=str(error))
        ns.out.finish()

    except ValueError as error:
        ns.out.task("FAILED", None)
        ns.out.finish()
        for arg in error.args:
            ns.out.task(None, "echo", echo=arg)
            ns.out.finish()

    except KeyboardInterrupt:
        ns.out.finish()
        ns.out.task("HALT", "cancelled")
        ns.out.finish()

    except OSError as error:

        key = "error.os"
        if isinstance(error, (socket.gaierror, socket.timeout)):
            key = "error.socket"

        ns.out.task("FAILED", None)
        ns.out.finish()
        ns.out.task(None, key)
        ns.out.finish()
        ns.out.task(None, "echo", echo=str(error))
        ns.out.finish()

    return EXIT_FAILURE


def cmd_search(ns: SearchNs) -> int:

    table = ns.out.table()
    table.add(_("search.type"), _("search.name"), _("search.flags"))
    table.separator()

    search = ns.input
    if search is not None:
        search, alias = ns.version_manifest.filter_latest(search)
    else:
        alias = False

    for version_entry in ns.version_manifest.all_versions():
        version_id = version_entry.id
        if search is None or (alias and search == version_id) or (not alias and search in version_id):
            local = ns.context.version_metadata_file(version_id).is_file()
            table.add(version_entry.type, version_id, _("search.flags.local") if local else "")

    table.print()
    return EXIT_OK


def cmd_install(ns: InstallNs) -> int:
    version = new_version(ns)
    version.install(watcher=StartWatcher(ns))
    ns.out.task("OK", "start.installed", version=version.version)
    ns.out.finish()
    return EXIT_OK


def cmd_start(ns: StartNs) -> int:

    version = new_version(ns)
    version.auth_session = OfflineAuthSession(demo=ns.demo)
    if ns.jvm is not None:
        version.jvm_path = Path(ns.jvm)
    if ns.jvm_args is not None:
        version.jvm_args.extend(ns.jvm_args.split())
    if ns.game_args is not None:
        version.game_args.extend(ns.game_args.split())

    version.init_mem = ns.init_mem
    version.max_mem = ns.max_mem

    env = version.install(watcher=StartWatcher(ns))

    if ns.dry:
        ns.out.task("INFO", "start.dry")
        ns.out.finish()
        print(format_command_line(env.args))
        return EXIT_OK

    return start_environment(ns, env)


def new_version(ns: InstallNs) -> Version:
    """Construct the version to install, resolving aliases through the manifest.
    """

    version_id, alias = ns.version_manifest.filter_latest(ns.version)
    if alias:
        ns.out.task("INFO", "start.version.alias", alias=ns.version, version=version_id)
        ns.out.finish()

    version_class = ServerVersion if ns.server else Version
    return version_class(version_id, context=ns.context, manifest=ns.version_manifest)


def start_environment(ns: RootNs, env: Environment) -> int:
    """Run the game and return its exit code.
    """

    ns.out.task("OK", "start.starting")
    ns.out.finish()

    if ns.verbose >= 1:
        print(format_command_line(env.args))

    code = env.run()
    ns.out.task("OK" if code == 0 else "FAILED", "start.exited", code=code)
    ns.out.finish()
    return code


class StartWatcher(SimpleWatcher):

    def __init__(self, ns: RootNs) -> None:

        def progress_task(key: str, **kwargs) -> None:
            ns.out.task("..", key, **kwargs)

        def finish_task(key: str, **kwargs) -> None:
            ns.out.task("OK", key, **kwargs)
            ns.out.finish()

        def natives_installed(e: NativesInstalledEvent) -> None:
            if not len(e.errors):
                finish_task("start.natives.installed", count=e.count)
            else:
                ns.out.task("WARN", "start.natives.installed", count=e.count - len(e.errors))
                ns.out.finish()
                for error in e.errors:
                    ns.out.task(None, "start.natives.error", archive=error.archive.name, message=str(error.origin))
                    ns.out.finish()

        super().__init__({
            VersionLoadingEvent: lambda e: progress_task("start.version.loading", version=e.version),
            VersionLoadedEvent: lambda e: finish_task("start.version.loaded", version=e.version),
            JarFoundEvent: lambda e: finish_task("start.jar.found", path=e.path),
            LibrariesResolvingEvent: lambda e: progress_task("start.libraries.resolving"),
            LibrariesResolvedEvent: lambda e: finish_task("start.libraries.resolved",
                class_libs_count=e.class_libs_count,
                native_libs_count=e.native_libs_count),
            AssetsResolveEvent: lambda e: finish_task("start.assets.resolved", index_version=e.index_version, count=e.count),
            DownloadStartEvent: self.download_start,
            DownloadProgressEvent: self.download_progress,
            DownloadCompleteEvent: self.download_complete,
            NativesInstalledEvent: natives_installed,
            EulaWrittenEvent: lambda e: finish_task("start.eula.written", path=e.path),
        })

        self.ns = ns
        self.entries_count = 0
        self.size = 0

    def download_start(self, e: DownloadStartEvent):

        if self.ns.verbose:
            self.ns.out.task("INFO", "download.threads_count", count=e.threads_count)
            self.ns.out.finish()

        self.entries_count = e.entries_count
        self.size = 0
        self.ns.out.task("..", "download.start")

    def download_progress(self, e: DownloadProgressEvent) -> None:

        if isinstance(e.result, DownloadResultSuccess):
            self.size += e.result.size

        total_count = str(self.entries_count)
        count = f"{e.count:{len(total_count)}}"

        self.ns.out.task("..", "download.progress",
            count=count,
            total_count=total_count,
            size=f"{format_number(self.size)}o")

    def download_complete(self, e: DownloadCompleteEvent) -> None:
        self.ns.out.task("OK", None)
        self.ns.out.finish()
