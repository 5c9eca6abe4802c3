"""Extraction of native libraries' archives into the natives directory of a version.
"""

from zipfile import ZipFile, BadZipFile
from pathlib import Path
import shutil
import zlib

from typing import List


def install_native(archive: Path, natives_dir: Path) -> List[str]:
    """Extract all file entries of a native archive into the given directory, only the
    base name of each entry is kept, so an entry with the same name as a previous one
    overwrites it.

    :return: The list of extracted file names.
    :raises OSError: If the archive can't be read or a file can't be written.
    :raises BadZipFile: If the archive is not a valid ZIP archive.
    :raises NotImplementedError: If an entry uses an unsupported compression method.
    :raises RuntimeError: If an entry is encrypted.
    """

    extracted = []
    with ZipFile(archive) as native_zip:
        for native_info in native_zip.infolist():

            if native_info.is_dir():
                continue

            native_name = native_info.filename.rpartition("/")[2]
            if not native_name:
                continue

            with native_zip.open(native_info) as src_fp, \
                (natives_dir / native_name).open("wb") as dst_fp:
                shutil.copyfileobj(src_fp, dst_fp)

            extracted.append(native_name)

    return extracted


def install_natives(archives: List[Path], natives_dir: Path) -> List["ExtractionError"]:
    """Extract all the given native archives into the natives directory. A failure to
    extract an archive doesn't prevent the other ones from being extracted.

    :param archives: Paths of the downloaded native archives.
    :param natives_dir: The directory where native files are extracted, created if
    needed.
    :return: The list of errors, one per archive that failed, empty on success.
    """

    natives_dir.mkdir(parents=True, exist_ok=True)

    errors = []
    for archive in archives:
        try:
            install_native(archive, natives_dir)
        except (OSError, BadZipFile, EOFError, zlib.error, NotImplementedError, RuntimeError) as e:
            errors.append(ExtractionError(archive, e))

    return errors


class ExtractionError(Exception):
    """An error while extracting a native archive, the original error is given.
    """

    def __init__(self, archive: Path, origin: Exception) -> None:
        self.archive = archive
        self.origin = origin

    def __str__(self) -> str:
        return f"{self.archive}: {self.origin}"
