from argparse import ArgumentParser
from pathlib import Path

from ..manifest import VersionManifest
from ..context import Context

from .output import Output
from .lang import get as _

from typing import Optional


# The following classes are only used for type checking and represent a typed namespace
# as produced by the arguments registered to the argument parser.

class RootNs:
    main_dir: Optional[Path]
    work_dir: Optional[Path]
    timeout: Optional[float]
    out_kind: str
    verbose: int
    subcommand: Optional[str]
    # Initialized by main function after argument parsing.
    out: Output
    context: Context
    version_manifest: VersionManifest

class SearchNs(RootNs):
    input: Optional[str]

class InstallNs(RootNs):
    server: bool
    version: str

class StartNs(InstallNs):
    dry: bool
    demo: bool
    jvm: Optional[str]
    jvm_args: Optional[str]
    game_args: Optional[str]
    init_mem: Optional[int]
    max_mem: Optional[int]


def register_arguments() -> ArgumentParser:
    parser = ArgumentParser(allow_abbrev=False, prog="launchcraft", description=_("args"))
    parser.add_argument("--main-dir", help=_("args.main_dir"), type=Path)
    parser.add_argument("--work-dir", help=_("args.work_dir"), type=Path)
    parser.add_argument("--timeout", help=_("args.timeout"), type=float)
    parser.add_argument("--output", help=_("args.output"), dest="out_kind", choices=["human-color", "human"], default="human-color")
    parser.add_argument("-v", dest="verbose", help=_("args.verbose"), action="count", default=0)
    register_subcommands(parser.add_subparsers(title="subcommands", dest="subcommand"))
    return parser


def register_subcommands(subparsers):
    register_search_arguments(subparsers.add_parser("search", help=_("args.search")))
    register_install_arguments(subparsers.add_parser("install", help=_("args.install")))
    register_start_arguments(subparsers.add_parser("start", help=_("args.start")))


def register_search_arguments(parser: ArgumentParser):
    parser.add_argument("input", nargs="?", help=_("args.search.input"))


def register_install_arguments(parser: ArgumentParser):
    parser.add_argument("--server", help=_("args.common.server"), action="store_true")
    parser.add_argument("version", nargs="?", default="release", help=_("args.common.version"))


def register_start_arguments(parser: ArgumentParser):
    parser.add_argument("--dry", help=_("args.start.dry"), action="store_true")
    parser.add_argument("--demo", help=_("args.start.demo"), action="store_true")
    parser.add_argument("--jvm", help=_("args.start.jvm"))
    parser.add_argument("--jvm-args", help=_("args.start.jvm_args"), metavar="ARGS")
    parser.add_argument("--game-args", help=_("args.start.game_args"), metavar="ARGS")
    parser.add_argument("--xms", dest="init_mem", help=_("args.start.init_mem"), type=int, metavar="MIB")
    parser.add_argument("--xmx", dest="max_mem", help=_("args.start.max_mem"), type=int, metavar="MIB")
    register_install_arguments(parser)
