from zipfile import ZipFile
from pathlib import Path
import struct
import io

from launchcraft.natives import install_natives, install_native, ExtractionError


def _make_archive(path: Path, files: dict) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with ZipFile(path, "w") as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return path


def test_install_native_flatten(tmp_path):

    archive = _make_archive(tmp_path / "archives" / "natives-linux.jar", {
        "META-INF/MANIFEST.MF": b"Manifest-Version: 1.0\n",
        "liblwjgl.so": b"lwjgl",
        "linux/x64/org/lwjgl/glfw/libglfw.so": b"glfw",
        "linux/x64/": b"",
    })

    natives_dir = tmp_path / "natives"
    natives_dir.mkdir()
    extracted = install_native(archive, natives_dir)

    assert sorted(extracted) == ["MANIFEST.MF", "libglfw.so", "liblwjgl.so"]
    assert (natives_dir / "liblwjgl.so").read_bytes() == b"lwjgl"
    assert (natives_dir / "libglfw.so").read_bytes() == b"glfw"
    assert not (natives_dir / "linux").exists()
    assert not (natives_dir / "META-INF").exists()


def test_install_natives(tmp_path):

    first = _make_archive(tmp_path / "a.jar", {"lib/common.so": b"first", "liba.so": b"a"})
    second = _make_archive(tmp_path / "b.jar", {"other/common.so": b"second", "libb.so": b"b"})

    natives_dir = tmp_path / "versions" / "test" / "natives"
    errors = install_natives([first, second], natives_dir)

    assert errors == []
    assert (natives_dir / "liba.so").read_bytes() == b"a"
    assert (natives_dir / "libb.so").read_bytes() == b"b"
    # Last archive wins on name collisions.
    assert (natives_dir / "common.so").read_bytes() == b"second"

    # Extracting again is harmless.
    assert install_natives([first, second], natives_dir) == []
    assert (natives_dir / "common.so").read_bytes() == b"second"


def test_install_natives_errors(tmp_path):

    corrupted = tmp_path / "corrupted.jar"
    corrupted.write_bytes(b"this is not a zip archive")
    missing = tmp_path / "missing.jar"
    valid = _make_archive(tmp_path / "valid.jar", {"libvalid.so": b"valid"})

    natives_dir = tmp_path / "natives"
    errors = install_natives([corrupted, valid, missing], natives_dir)

    assert [error.archive for error in errors] == [corrupted, missing]
    assert all(isinstance(error, ExtractionError) for error in errors)
    assert str(errors[0]).startswith(str(corrupted))

    # The valid archive is extracted anyway.
    assert (natives_dir / "libvalid.so").read_bytes() == b"valid"


def _patch_archive(files: dict, local_offset: int, central_offset: int, value: int) -> bytes:
    """Build an archive with a single stored entry and overwrite one 16 bits field of
    both its local header and its central directory header.
    """
    buf = io.BytesIO()
    with ZipFile(buf, "w") as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    data = bytearray(buf.getvalue())
    central = data.index(b"PK\x01\x02")
    data[local_offset:local_offset + 2] = struct.pack("<H", value)
    data[central + central_offset:central + central_offset + 2] = struct.pack("<H", value)
    return bytes(data)


def test_install_natives_unsupported_entries(tmp_path):

    # Compression method 99 is not supported by zipfile.
    unsupported = tmp_path / "unsupported.jar"
    unsupported.write_bytes(_patch_archive({"libunsupported.so": b"unsupported"}, 8, 10, 99))
    # Encrypted entries require a password.
    encrypted = tmp_path / "encrypted.jar"
    encrypted.write_bytes(_patch_archive({"libencrypted.so": b"encrypted"}, 6, 8, 1))
    valid = _make_archive(tmp_path / "valid.jar", {"libvalid.so": b"valid"})

    natives_dir = tmp_path / "natives"
    errors = install_natives([unsupported, encrypted, valid], natives_dir)

    assert [error.archive for error in errors] == [unsupported, encrypted]
    assert isinstance(errors[0].origin, NotImplementedError)
    assert isinstance(errors[1].origin, RuntimeError)

    # The archive after them is extracted anyway.
    assert (natives_dir / "libvalid.so").read_bytes() == b"valid"
