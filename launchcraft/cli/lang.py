"""CLI messages, all printed messages are referenced by a key.
"""

from launchcraft.download import DownloadResultError

from typing import Optional


def get_raw(key: str, kwargs: Optional[dict]) -> str:
    """Get a message formatted using the given keyword formatting arguments.

    :param key: The key of the message.
    :param kwargs: The keyword formatting dictionary.
    :return: Formatted message, or the key itself if not found.
    """
    try:
        return lang[key].format_map(kwargs or {})
    except KeyError:
        return key


def get(key: str, **kwargs) -> str:
    """Get a message formatted using the given keyword formatting arguments.
    """
    return get_raw(key, kwargs)


lang = {
    # Args root
    "args": "Launchcraft installs and starts Minecraft versions from the official "
            "Mojang's manifest, verifying every downloaded file.",
    "args.main_dir": "Set the main directory where versions, libraries and assets are "
                     "stored (default to a directory in your user's data).",
    "args.work_dir": "Set the instance directory where the game's JAR is stored and "
                     "the game is run (default to the main directory).",
    "args.timeout": "Set a global timeout (in decimal seconds) for network requests.",
    "args.output": "Set the output format of the launcher.",
    "args.verbose": "Enable verbose output, repeat for more.",
    # Args search
    "args.search": "Search for versions in the official manifest.",
    "args.search.input": "Filter versions containing this text, or an alias.",
    # Args install
    "args.install": "Install a version without starting it.",
    # Args start
    "args.start": "Install and start a version.",
    "args.start.dry": "Simulate the game starting, print the command line.",
    "args.start.demo": "Start the game in demo mode.",
    "args.start.jvm": "Set a custom JVM 'java' executable path.",
    "args.start.jvm_args": "Additional JVM arguments, separated by spaces.",
    "args.start.game_args": "Additional game arguments, separated by spaces.",
    "args.start.init_mem": "Initial memory of the JVM, in MiB.",
    "args.start.max_mem": "Maximum memory of the JVM, in MiB.",
    "args.common.server": "Install the server instead of the client.",
    "args.common.version": "Version identifier, or 'release'/'snapshot' for the latest one.",
    # Common
    "echo": "{echo}",
    "cancelled": "Cancelled.",
    # Errors
    "error.os": "An unexpected operating system error happened:",
    "error.socket": "This operation requires an internet connection:",
    "error.http": "HTTP request failed: {message}",
    "error.parse": "Malformed metadata: {message}",
    "error.integrity": "Corrupted file: {message}",
    # Command search
    "search.type": "Type",
    "search.name": "Identifier",
    "search.flags": "Flags",
    "search.flags.local": "local",
    # Command start/install
    "start.version.not_found": "Version {version} not found.",
    "start.version.alias": "Latest {alias} is {version}",
    "start.version.loading": "Loading version {version}...",
    "start.version.loaded": "Loaded version {version}",
    "start.jar.found": "Version JAR found: {path}",
    "start.jar.not_found": "No {kind} JAR file found for this version.",
    "start.libraries.resolving": "Resolving libraries...",
    "start.libraries.resolved": "Resolved {class_libs_count} class libraries and {native_libs_count} native libraries",
    "start.assets.resolved": "Resolved {count} assets for index {index_version}",
    "start.natives.installed": "Installed {count} native libraries",
    "start.natives.error": "Failed to extract {archive}: {message}",
    "start.eula.written": "EULA accepted in {path}",
    "start.installed": "Version {version} installed",
    "start.dry": "Dry run, command line:",
    "start.starting": "Starting the game...",
    "start.exited": "Game exited with code {code}",
    # Pretty download
    "download.threads_count": "Download threads count: {count}",
    "download.start": "Download starting...",
    "download.progress": "Download: {count}/{total_count} {size:>8}",
    "download.error": "{name}: {message}",
    f"download.error.{DownloadResultError.CONNECTION}": "Connection error",
    f"download.error.{DownloadResultError.NOT_FOUND}": "Not found",
    f"download.error.{DownloadResultError.INVALID_SIZE}": "Invalid size",
    f"download.error.{DownloadResultError.INVALID_SHA1}": "Invalid SHA1",
}
