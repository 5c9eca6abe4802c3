"""Global utilities used internally. The functions can be used externally but upward
compatibility is not guaranteed unless explicitly specified.
"""

from pathlib import Path
import platform
import hashlib
import re

from typing import Any, Union


jvm_bin_filename = "javaw.exe" if platform.system() == "Windows" else "java"

_SHA1_PATTERN = re.compile(r"^[0-9a-f]{40}$")


def calc_input_sha1(input_stream, *, buffer_len: int = 8192) -> str:
    """Internal function to calculate the sha1 of an input stream.

    :param input_stream: The input stream that supports `readinto`.
    :param buffer_len: Internal buffer length, defaults to 8192
    :return: The sha1 string.
    """
    h = hashlib.sha1()
    b = bytearray(buffer_len)
    mv = memoryview(b)
    for n in iter(lambda: input_stream.readinto(mv), 0):
        h.update(mv[:n])
    return h.hexdigest()


def calc_file_sha1(file: Path) -> str:
    """Calculate the sha1 of a file given its path, this may raise any `OSError`.
    """
    with file.open("rb") as fp:
        return calc_input_sha1(fp)


def is_sha1(value: Any) -> bool:
    """Return true if the given value is a 40 characters lowercase hexadecimal string.
    """
    return isinstance(value, str) and _SHA1_PATTERN.match(value) is not None


def get_launcher_dir() -> Path:
    """Internal function to get the default directory for installing versions, assets
    and libraries.
    """
    home = Path.home()
    return {
        "Windows": home.joinpath("AppData", "Roaming", ".launchcraft"),
        "Darwin": home.joinpath("Library", "Application Support", "launchcraft"),
    }.get(platform.system(), home / ".launchcraft")


class IntegrityError(Exception):
    """Raised, or used as origin of download errors, when some content doesn't match
    its expected sha1 or size.
    """

    SHA1 = "sha1"
    SIZE = "size"

    def __init__(self, file: Union[Path, str], kind: str, expected: str, actual: str) -> None:
        self.file = file
        self.kind = kind
        self.expected = expected
        self.actual = actual

    def __str__(self) -> str:
        return f"{self.file}: expected {self.kind} {self.expected}, got {self.actual}"
