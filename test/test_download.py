from pathlib import Path
import hashlib
import pytest

from launchcraft.download import DownloadEntry, DownloadList, DownloadResult, \
    DownloadResultError, DownloadResultSuccess, IntegrityError, default_threads_count


ICON_DATA = b"\x89PNG fake icon data" * 100
ICON_SHA1 = hashlib.sha1(ICON_DATA).hexdigest()


def test_download(http_server, tmp_path):

    assets_dir = tmp_path / "assets"
    url = http_server.add("/bd/icon", ICON_DATA)

    default = DownloadEntry(url,
        assets_dir / "icons" / "icon_16x16.png",
        name="default")

    check_sha1 = DownloadEntry(url,
        assets_dir / "icons" / "icon_16x16_check_sha1.png",
        sha1=ICON_SHA1,
        name="check_sha1")

    check_size = DownloadEntry(url,
        assets_dir / "icons" / "icon_16x16_check_size.png",
        size=len(ICON_DATA),
        name="check_size")

    check_all = DownloadEntry(url,
        assets_dir / "icons" / "icon_16x16_check_all.png",
        sha1=ICON_SHA1,
        size=len(ICON_DATA),
        name="check_all")

    wrong_sha1 = DownloadEntry(url,
        assets_dir / "icons" / "icon_16x16_wrong_sha1.png",
        sha1="bdf48ef6b5d0d23bbb02e17d04865216179f510b",
        name="wrong_sha1")

    wrong_size = DownloadEntry(url,
        assets_dir / "icons" / "icon_16x16_wrong_size.png",
        size=1189,
        name="wrong_size")

    not_found = DownloadEntry(http_server.url("/bd/missing"),
        assets_dir / "icons" / "icon_16x16_not_found.png",
        sha1=ICON_SHA1,
        name="not_found")

    # Nothing listens on this port.
    conn_err = DownloadEntry("http://127.0.0.1:1/bd/icon",
        assets_dir / "icons" / "icon_16x16_conn_err.png",
        sha1=ICON_SHA1,
        name="conn_err")

    dl = DownloadList()

    assert dl.add(default)
    assert dl.add(check_sha1)
    assert dl.add(check_size)
    assert dl.add(check_all)
    assert dl.add(wrong_sha1)
    assert dl.add(wrong_size)
    assert dl.add(not_found)
    assert dl.add(conn_err)

    with pytest.raises(ValueError):
        dl.add(DownloadEntry("ssh://foo.bar", Path("invalid")))

    results = {result.entry: result for result in dl.download_all(2)}

    def is_error(result: DownloadResult, code: str) -> bool:
        return isinstance(result, DownloadResultError) and result.code == code

    assert len(results) == 8

    assert is_error(results[wrong_sha1], DownloadResultError.INVALID_SHA1)
    assert is_error(results[wrong_size], DownloadResultError.INVALID_SIZE)
    assert is_error(results[not_found], DownloadResultError.NOT_FOUND)
    assert is_error(results[conn_err], DownloadResultError.CONNECTION)

    assert isinstance(results[wrong_sha1].origin, IntegrityError)
    assert results[wrong_sha1].origin.actual == ICON_SHA1
    assert isinstance(results[wrong_size].origin, IntegrityError)

    for entry in (default, check_sha1, check_size, check_all):
        assert isinstance(results[entry], DownloadResultSuccess)
        assert results[entry].size == len(ICON_DATA)
        assert entry.dst.read_bytes() == ICON_DATA

    # Files failing verification are left in place.
    assert wrong_sha1.dst.is_file()
    assert wrong_size.dst.is_file()
    assert not not_found.dst.is_file()
    assert not conn_err.dst.is_file()


def test_download_deduplicate(http_server, tmp_path):

    url = http_server.add("/file", ICON_DATA)
    dst = tmp_path / "file"

    dl = DownloadList()
    assert dl.add(DownloadEntry(url, dst, sha1=ICON_SHA1))
    assert not dl.add(DownloadEntry(url, dst))
    assert not dl.add(DownloadEntry(http_server.url("/other"), dst))
    assert len(dl) == 1

    results = dl.download_all()
    assert len(results) == 1
    assert http_server.count("/file") == 1


def test_download_skip_existing(tmp_path):

    dst = tmp_path / "existing"
    dst.write_bytes(b"not verified")

    dl = DownloadList()
    assert not dl.add(DownloadEntry("http://127.0.0.1:1/existing", dst, sha1=ICON_SHA1), verify=True)
    assert dl.add(DownloadEntry("http://127.0.0.1:1/existing", dst, sha1=ICON_SHA1))
    assert dl.download_all() != []


def test_download_redirect(http_server, tmp_path):

    http_server.add("/real", ICON_DATA)
    http_server.redirects["/moved"] = "/real"

    entry = DownloadEntry(http_server.url("/moved"), tmp_path / "moved", sha1=ICON_SHA1)
    dl = DownloadList()
    dl.add(entry)

    results = dl.download_all(1)
    assert len(results) == 1
    assert isinstance(results[0], DownloadResultSuccess)
    assert results[0].entry is entry
    assert entry.dst.read_bytes() == ICON_DATA


def test_download_many(http_server, tmp_path):

    dl = DownloadList()
    datas = {}
    for i in range(50):
        data = f"file number {i}".encode() * (i + 1)
        datas[i] = data
        dl.add(DownloadEntry(http_server.add(f"/files/{i}", data),
            tmp_path / "files" / f"{i % 7}" / f"{i}.bin",
            sha1=hashlib.sha1(data).hexdigest(),
            size=len(data)))

    counts = []
    results = dl.download_all(8, lambda count, result: counts.append(count))

    assert len(results) == 50
    assert all(isinstance(result, DownloadResultSuccess) for result in results)
    assert sorted(counts) == list(range(1, 51))

    for i, data in datas.items():
        assert (tmp_path / "files" / f"{i % 7}" / f"{i}.bin").read_bytes() == data


def test_download_empty():
    assert DownloadList().download_all() == []
    assert DownloadList().download_all(0) == []


def test_download_no_thread(http_server, tmp_path):

    dl = DownloadList()
    dl.add(DownloadEntry(http_server.url("/file"), tmp_path / "file"))

    # Entries are never silently left undownloaded.
    with pytest.raises(ValueError):
        dl.download_all(0)

    assert not (tmp_path / "file").exists()
    assert http_server.requests == []


def test_default_threads_count():
    assert default_threads_count(0) == 0
    assert default_threads_count(1) == 1
    assert default_threads_count(2) == 2
    assert default_threads_count(10000) >= 2
