"""Evaluation of the arguments templates of version metadata into the game's command
line. Arguments are parsed into a tree of nodes, literals with `${name}` placeholders,
conditional nodes guarded by rules and lists, then evaluated in two phases, JVM and
game, each having its own table of replacements.
"""

from pathlib import Path
import os
import re

from .rule import Rule, parse_rules, interpret_rules
from .auth import AuthSession
from . import LAUNCHER_NAME, LAUNCHER_VERSION

from typing import Optional, Dict, List, Set, Tuple, Any


DEBUG_LOADER_ARG = "-Dorg.lwjgl.util.DebugLoader=true"

# Placeholders that identify the player, arguments using them are dropped when offline.
AUTH_TOKENS = ("auth_player_name", "auth_access_token", "auth_uuid")

_TOKEN_PATTERN = re.compile(r"\$\{([^}]*)\}")


class ArgumentNode:
    """Base class of parsed arguments nodes.
    """

    __slots__ = ()

    def evaluate(self, phase: "ArgumentPhase") -> None:
        """Evaluate this node, appending its resulting arguments to the phase.
        """
        raise NotImplementedError


class LiteralArgument(ArgumentNode):
    """A single argument, possibly containing placeholders.
    """

    __slots__ = "text",

    def __init__(self, text: str) -> None:
        self.text = text

    def evaluate(self, phase: "ArgumentPhase") -> None:
        phase.push_literal(self.text)

    def __repr__(self) -> str:
        return f"<LiteralArgument {self.text!r}>"


class ConditionalArgument(ArgumentNode):
    """A node included only if its rules allow it.
    """

    __slots__ = "rules", "value"

    def __init__(self, rules: List[Rule], value: ArgumentNode) -> None:
        self.rules = rules
        self.value = value

    def evaluate(self, phase: "ArgumentPhase") -> None:
        if phase.interpret_rules(self.rules):
            self.value.evaluate(phase)

    def __repr__(self) -> str:
        return f"<ConditionalArgument {self.rules} {self.value}>"


class ListArgument(ArgumentNode):
    """A list of nodes evaluated in order.
    """

    __slots__ = "children",

    def __init__(self, children: List[ArgumentNode]) -> None:
        self.children = children

    def evaluate(self, phase: "ArgumentPhase") -> None:
        for child in self.children:
            child.evaluate(phase)

    def __repr__(self) -> str:
        return f"<ListArgument {self.children}>"


def parse_argument(value: Any, path: str) -> ArgumentNode:
    """Parse an arguments tree from version metadata, the path is used for error
    messages.
    """

    if isinstance(value, str):
        return LiteralArgument(value)
    elif isinstance(value, list):
        return ListArgument([parse_argument(child, f"{path}/{i}") for i, child in enumerate(value)])
    elif isinstance(value, dict):
        rules = parse_rules(value.get("rules", []), f"{path}/rules")
        if "value" not in value:
            raise ValueError(f"{path}/value must be a list or a string")
        return ConditionalArgument(rules, parse_argument(value["value"], f"{path}/value"))
    else:
        raise ValueError(f"{path} must be an object, a list or a string")


def session_features(auth_session: AuthSession) -> Dict[str, bool]:
    """Features used to evaluate rules of the metadata, for the given session.
    """
    return {
        "is_demo_user": auth_session.demo,
        "has_custom_resolution": False,
    }


def format_jvm_options(
    jvm_args: Optional[List[str]] = None,
    init_mem: Optional[int] = None,
    max_mem: Optional[int] = None
) -> List[str]:
    """Format the JVM options given by the user, the memory sizes are given in MiB and
    follow the other JVM arguments.
    """

    options = list(jvm_args or ())
    if init_mem is not None:
        options.append(f"-Xms{init_mem}M")
    if max_mem is not None:
        options.append(f"-Xmx{max_mem}M")
    return options


class LaunchContext:
    """Everything needed to replace placeholders of the arguments, paths and identity
    of the player. Additional JVM and game arguments of the user are also given, they
    are not subject to placeholders replacement.
    """

    def __init__(self,
        version: str,
        classpath: str,
        game_dir: Path,
        assets_dir: Path,
        natives_dir: Path,
        auth_session: AuthSession, *,
        libraries_dir: Optional[Path] = None,
        assets_index_name: Optional[str] = None,
        version_type: str = "release",
        assets_virtual_dir: Optional[Path] = None,
        jvm_args: Optional[List[str]] = None,
        game_args: Optional[List[str]] = None,
        init_mem: Optional[int] = None,
        max_mem: Optional[int] = None
    ) -> None:
        self.version = version
        self.classpath = classpath
        self.game_dir = game_dir
        self.assets_dir = assets_dir
        self.natives_dir = natives_dir
        self.auth_session = auth_session
        self.libraries_dir = libraries_dir
        self.assets_index_name = version if assets_index_name is None else assets_index_name
        self.version_type = version_type
        self.assets_virtual_dir = assets_virtual_dir
        self.jvm_args = jvm_args or []
        self.game_args = game_args or []
        self.init_mem = init_mem
        self.max_mem = max_mem

    def features(self) -> Dict[str, bool]:
        return session_features(self.auth_session)

    def jvm_replacements(self) -> Dict[str, str]:
        replacements = {
            "launcher_name": LAUNCHER_NAME,
            "launcher_version": LAUNCHER_VERSION,
            "classpath": self.classpath,
            "classpath_separator": os.pathsep,
            "natives_directory": str(self.natives_dir),
            "version_name": self.version,
        }
        if self.libraries_dir is not None:
            replacements["library_directory"] = str(self.libraries_dir)
        return replacements

    def game_replacements(self) -> Dict[str, str]:

        auth_session = self.auth_session
        assets_dir = str(self.assets_dir)
        game_assets = assets_dir if self.assets_virtual_dir is None else str(self.assets_virtual_dir)

        replacements = {
            "version_name": self.version,
            "version_type": self.version_type,
            "game_directory": str(self.game_dir),
            "assets_root": assets_dir,
            "assets_index_name": self.assets_index_name,
            "game_assets": game_assets,
            "user_type": auth_session.user_type,
            "user_properties": "{}",
            "clientid": auth_session.client_id,
            "auth_xuid": auth_session.get_xuid(),
            "auth_session": auth_session.format_token_argument(True),
        }

        if not auth_session.offline:
            replacements["auth_player_name"] = auth_session.username
            replacements["auth_uuid"] = auth_session.uuid
            replacements["auth_access_token"] = auth_session.format_token_argument(False)

        return replacements


class ArgumentPhase:
    """State of the evaluation of one phase of arguments. Evaluated literals are stored
    in order, dropped ones are stored as None until the phase is collapsed.
    """

    def __init__(self,
        replacements: Dict[str, str],
        features: Dict[str, bool], *,
        dropped_tokens: Set[str] = frozenset()
    ) -> None:
        self.replacements = replacements
        self.features = features
        self.dropped_tokens = dropped_tokens
        self.items: List[Optional[str]] = []
        self.tokens: Set[str] = set()

    def interpret_rules(self, rules: List[Rule]) -> bool:
        """Interpret rules of a conditional argument. On top of the common rules
        semantics, custom resolution is never supported and any other feature than the
        demo one excludes the argument.
        """

        if not interpret_rules(rules, self.features):
            return False

        for rule in rules:
            for feat_name, feat_expected in rule.features.items():
                if feat_name == "has_custom_resolution":
                    return False
                elif feat_name not in self.features:
                    return False
                elif rule.action == Rule.ALLOW and self.features[feat_name] != feat_expected:
                    return False

        return True

    def push_literal(self, text: str) -> None:

        tokens = _TOKEN_PATTERN.findall(text)
        self.tokens.update(tokens)

        if any(token in self.dropped_tokens for token in tokens):
            self.items.append(None)
        else:
            self.items.append(substitute(text, self.replacements))

    def collapse(self) -> List[str]:
        """Return the evaluated arguments, without dropped ones. When a dropped argument
        follows another dropped or empty argument, the last kept argument is removed.
        """

        args = []
        prev_dropped = False
        for item in self.items:
            if item is None:
                if prev_dropped and len(args):
                    args.pop()
                prev_dropped = True
            else:
                args.append(item)
                prev_dropped = not len(item)
        return args


def substitute(text: str, replacements: Dict[str, str]) -> str:
    """Replace all placeholders of the form `${name}` in the text.

    :raises UnresolvedTokenError: If a placeholder has no replacement.
    """

    def replace(match: "re.Match") -> str:
        try:
            return replacements[match.group(1)]
        except KeyError:
            raise UnresolvedTokenError(match.group(1), text)

    return _TOKEN_PATTERN.sub(replace, text)


def evaluate_arguments(node: ArgumentNode, phase: ArgumentPhase) -> List[str]:
    """Evaluate an arguments tree in the given phase and return the collapsed list of
    arguments.
    """
    node.evaluate(phase)
    return phase.collapse()


def parse_metadata_arguments(metadata: dict) -> Tuple[ArgumentNode, ArgumentNode]:
    """Parse the JVM and game arguments trees of the version metadata. Legacy metadata
    without `arguments` uses built-in JVM arguments and space-separated game arguments.
    """

    arguments = metadata.get("arguments")
    if arguments is not None:

        if not isinstance(arguments, dict):
            raise ValueError("metadata: /arguments must be an object")

        jvm_node = parse_argument(arguments.get("jvm", []), "metadata: /arguments/jvm")
        game_node = parse_argument(arguments.get("game", []), "metadata: /arguments/game")

    else:

        jvm_node = parse_argument(legacy_jvm_args, "<legacy_jvm_args>")

        legacy_args = metadata.get("minecraftArguments", "")
        if not isinstance(legacy_args, str):
            raise ValueError("metadata: /minecraftArguments must be a string")

        game_node = ListArgument([LiteralArgument(arg) for arg in legacy_args.split(" ") if len(arg)])

    return jvm_node, game_node


def build_command_line(metadata: dict, context: LaunchContext) -> List[str]:
    """Build the arguments of the JVM command line, without the JVM executable, from
    the version metadata.

    :param metadata: The version metadata.
    :param context: Paths and identity of the player, with additional user arguments
    placed after the JVM arguments and after the game arguments.
    :return: The list of arguments.
    :raises UnresolvedTokenError: If a placeholder of the arguments is unknown.
    """

    main_class = metadata.get("mainClass")
    if not isinstance(main_class, str):
        raise ValueError("metadata: /mainClass must be a string")

    jvm_node, game_node = parse_metadata_arguments(metadata)
    features = context.features()

    jvm_phase = ArgumentPhase(context.jvm_replacements(), features)
    args = evaluate_arguments(jvm_node, jvm_phase)
    args.extend(format_jvm_options(context.jvm_args, context.init_mem, context.max_mem))

    args.append(DEBUG_LOADER_ARG)
    if "classpath" not in jvm_phase.tokens:
        args.extend(("-cp", context.classpath))

    args.append(main_class)

    dropped_tokens = set(AUTH_TOKENS) if context.auth_session.offline else set()
    game_phase = ArgumentPhase(context.game_replacements(), features, dropped_tokens=dropped_tokens)
    args.extend(evaluate_arguments(game_node, game_phase))
    args.extend(context.game_args)

    return args


class UnresolvedTokenError(AssertionError):
    """Raised when a placeholder of an argument has no known replacement, this means
    that the metadata uses a placeholder that is not supported.
    """

    def __init__(self, token: str, argument: str) -> None:
        self.token = token
        self.argument = argument

    def __str__(self) -> str:
        return f"unresolved ${{{self.token}}} in argument {self.argument!r}"


# JVM arguments used by versions without modern arguments. Rules are interpreted with
# the last matching rule winning and no matching rule allowing, so a single rule such
# as `allow osx` would also include its argument on linux. Conditional arguments here
# start with a disallowing rule so that they are only included on the given platform.
# Modern metadata written with a single allow rule is interpreted as is.
legacy_jvm_args = [
    {
        "rules": [{"action": "disallow"}, {"action": "allow", "os": {"name": "osx"}}],
        "value": ["-XstartOnFirstThread"]
    },
    {
        "rules": [{"action": "disallow"}, {"action": "allow", "os": {"name": "windows"}}],
        "value": "-XX:HeapDumpPath=MojangTricksIntelDriversForPerformance_javaw.exe_minecraft.exe.heapdump"
    },
    {
        "rules": [{"action": "disallow"}, {"action": "allow", "os": {"name": "windows", "version": "^10\\."}}],
        "value": ["-Dos.name=Windows 10", "-Dos.version=10.0"]
    },
    "-Djava.library.path=${natives_directory}",
    "-Dminecraft.launcher.brand=${launcher_name}",
    "-Dminecraft.launcher.version=${launcher_version}",
    "-cp",
    "${classpath}"
]
