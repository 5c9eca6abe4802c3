"""Definition of the multithreaded downloader.

A `DownloadList` is filled with `DownloadEntry` objects, each one owning its destination
file exclusively, and then downloaded in a single batch by a bounded pool of threads.
The batch is a barrier: `download_all` only returns once every entry has either been
successfully downloaded and verified, or has failed.
"""

from http.client import HTTPConnection, HTTPSConnection, HTTPException
from threading import Thread
from pathlib import Path
from queue import Queue
import urllib.parse
import hashlib
import os

from .http import ssl_context, USER_AGENT
from .util import IntegrityError

from typing import Optional, Dict, List, Tuple, Union, Iterator, Callable, Set


class DownloadEntry:
    """A download entry for the download list.
    """

    __slots__ = "url", "size", "sha1", "dst", "name"

    def __init__(self,
        url: str,
        dst: Path, *,
        size: Optional[int] = None,
        sha1: Optional[str] = None,
        name: Optional[str] = None
    ) -> None:
        self.url = url
        self.dst = dst
        self.size = size
        self.sha1 = sha1
        self.name = url if name is None else name

    def __repr__(self) -> str:
        return f"<DownloadEntry {self.name}>"

    def __hash__(self) -> int:
        # Size and sha1 are part of the hash, this means that once added to a
        # dictionary, these attributes should not be modified.
        return hash((self.url, self.dst, self.size, self.sha1))

    def __eq__(self, other):
        return isinstance(other, DownloadEntry) and \
            (self.url, self.dst, self.size, self.sha1) == \
            (other.url, other.dst, other.size, other.sha1)


class _DownloadEntry:
    """Internal class with already parsed URL to speed up processing and prevent
    unsupported URL schemes.
    """

    __slots__ = "https", "host", "port", "target", "entry"

    def __init__(self, https: bool, host: str, port: Optional[int], target: str, entry: DownloadEntry) -> None:
        self.https = https
        self.host = host
        self.port = port
        self.target = target
        self.entry = entry

    @classmethod
    def from_entry(cls, entry: DownloadEntry) -> "_DownloadEntry":
        return cls.from_url(entry.url, entry)

    @classmethod
    def from_url(cls, url: str, entry: DownloadEntry) -> "_DownloadEntry":

        # We only support HTTP/HTTPS
        url_parsed = urllib.parse.urlparse(url)
        if url_parsed.scheme not in ("http", "https"):
            raise ValueError(f"unsupported scheme '{url_parsed.scheme}://' from url {url}")
        if not url_parsed.hostname:
            raise ValueError(f"missing host from url {url}")

        target = url_parsed.path or "/"
        if url_parsed.query:
            target += f"?{url_parsed.query}"

        return cls(
            url_parsed.scheme == "https",
            url_parsed.hostname,
            url_parsed.port,
            target,
            entry)


class DownloadResult:
    """Base class for download result yielded by `DownloadList.download` function.
    """
    __slots__ = "thread_id", "entry"
    def __init__(self, thread_id: int, entry: DownloadEntry) -> None:
        self.thread_id = thread_id
        self.entry = entry


class DownloadResultSuccess(DownloadResult):
    """Subclass of result when a file's download has been successful and the file has
    been verified against its expected size and sha1, if any.
    """
    __slots__ = "size",
    def __init__(self, thread_id: int, entry: DownloadEntry, size: int) -> None:
        super().__init__(thread_id, entry)
        self.size = size

    def __repr__(self) -> str:
        return f"<DownloadResultSuccess {self.entry.name}>"


class DownloadResultError(DownloadResult):
    """Subclass of result when a file's download has failed, the error code is indicated
    and the optional original error is given (connection errors and integrity errors).
    """

    CONNECTION = "connection"
    NOT_FOUND = "not_found"
    INVALID_SIZE = "invalid_size"
    INVALID_SHA1 = "invalid_sha1"

    __slots__ = "code", "origin"

    def __init__(self, thread_id: int, entry: DownloadEntry, code: str, origin: Optional[Exception]) -> None:
        super().__init__(thread_id, entry)
        self.code = code
        self.origin = origin

    def __repr__(self) -> str:
        return f"<DownloadResultError {self.entry.name}: {self.code}>"


class DownloadList:
    """A download list, composed of entries that can be downloaded all at once in batch
    with multithreading. Two entries can't share the same destination file, the second
    one is silently ignored when added.
    """

    __slots__ = "entries", "count", "size", "_dsts"

    def __init__(self):
        self.entries: List[_DownloadEntry] = []
        self.count = 0
        self.size = 0
        self._dsts: Set[Path] = set()

    def clear(self) -> None:
        """Clear the download entry, removing all entries and computed count/size.
        """
        self.entries.clear()
        self._dsts.clear()
        self.count = 0
        self.size = 0

    def add(self, entry: DownloadEntry, *, verify: bool = False) -> bool:
        """Add a download entry to this list.

        :param entry: The entry to add.
        :param verify: Set to true in order to check if the destination file already
        exists, in such case the entry is not added and the file is trusted as is.
        :return: True if the entry has actually been added to the list.
        :raises ValueError: If the URL of the entry is not supported.
        """

        if entry.dst in self._dsts:
            return False

        if verify and entry.dst.is_file():
            return False

        self.entries.append(_DownloadEntry.from_entry(entry))
        self._dsts.add(entry.dst)
        self.count += 1
        if entry.size is not None:
            self.size += entry.size

        return True

    def __len__(self) -> int:
        return self.count

    def __iter__(self) -> Iterator[DownloadEntry]:
        return (raw_entry.entry for raw_entry in self.entries)

    def download(self, threads_count: int) -> Iterator[Tuple[int, DownloadResult]]:
        """Execute the download.

        :param threads_count: The number of threads to run the download on.
        :return: This function returns an iterator that yields a tuple that contain the
        total number of results and the new result that came in.
        :raises ValueError: If there are entries to download but no thread to run them.
        """

        # Sort our entries in order to download big files first, this is allows better
        # parallelization at start and avoid too much blocking at the end of the download.
        # Note that entries without size are considered 1 Mio, to download early.
        self.entries.sort(key=lambda e: e.entry.size or 1048576, reverse=True)

        entries_count = len(self.entries)
        if not entries_count:
            return
        if threads_count < 1:
            raise ValueError(f"at least one thread is needed to download {entries_count} entries")

        threads: List[Thread] = []

        entries_queue = Queue()
        result_queue = Queue()

        for th_id in range(threads_count):
            th = Thread(target=_download_thread_wrapper,
                        args=(th_id, entries_queue, result_queue),
                        daemon=True,
                        name=f"Download Thread {th_id}")
            th.start()
            threads.append(th)

        for entry in self.entries:
            entries_queue.put(entry)

        result_count = 0
        crash = None

        try:
            while result_count < entries_count:

                result = result_queue.get()
                if isinstance(result, _DownloadThreadCrash):
                    crash = result
                    break

                result_count += 1
                yield result_count, result

        finally:
            # Send 'threads_count' sentinels.
            # We intentionally don't join thread because it takes some time for unknown
            # reason. And we don't care of these threads because these are daemon ones.
            for th_id in range(threads_count):
                entries_queue.put(None)

        if crash is not None:
            raise ValueError(f"unexpected crash from thread {crash.thread_id}", crash.origin)

    def download_all(self,
        threads_count: Optional[int] = None,
        callback: Optional[Callable[[int, DownloadResult], None]] = None
    ) -> List[DownloadResult]:
        """Download every entry and block until all of them are finished, successfully
        or not. This function never raises on a single download failure, the caller
        should look for `DownloadResultError` in the returned results.

        :param threads_count: Number of threads, computed from the number of entries and
        the number of CPUs if not specified.
        :param callback: Optional function called with each result as it comes in.
        :return: The results of all entries, in completion order.
        """

        if threads_count is None:
            threads_count = default_threads_count(len(self.entries))

        results = []
        for result_count, result in self.download(threads_count):
            if callback is not None:
                callback(result_count, result)
            results.append(result)

        return results


def default_threads_count(entries_count: int) -> int:
    """Compute the default number of download threads for the given number of entries,
    never more threads than entries.
    """
    return min(entries_count, max(2, (os.cpu_count() or 1) * 4))


class _DownloadThreadCrash:
    """Unexpected exception happening in a thread, this is the result of a bad logic
    from programmer.
    """
    __slots__ = "thread_id", "origin",
    def __init__(self, thread_id: int, origin: Optional[BaseException]) -> None:
        self.thread_id = thread_id
        self.origin = origin


def _download_thread_wrapper(
    thread_id: int,
    entries_queue: Queue,
    result_queue: Queue
) -> None:
    """Wrapper for the download thread that basically ensures that any unexpected error
    sends a signal (DownloadThreadCrash) to the master to signal the crash.
    """
    try:
        _download_thread(thread_id, entries_queue, result_queue)
    except Exception as e:
        result_queue.put(_DownloadThreadCrash(thread_id, e))
    except BaseException as e:
        # Really bad error, should not happen, but do we ever know...
        result_queue.put(_DownloadThreadCrash(thread_id, e))
        raise


def _download_thread(
    thread_id: int,
    entries_queue: Queue,
    result_queue: Queue
) -> None:
    """This function is internally used for multi-threaded download. Each entry is only
    tried once, failures are sent back as `DownloadResultError`.

    :param entries_queue: Where entries to download are received.
    :param result_queue: Where threads send results.
    """

    # Cache for connections depending on scheme, host and port.
    conn_cache: Dict[Tuple[bool, str, Optional[int]], Union[HTTPConnection, HTTPSConnection]] = {}

    # Each thread has its own buffer.
    buffer_cap = 65536
    buffer_back = bytearray(buffer_cap)
    buffer = memoryview(buffer_back)

    ctx = ssl_context()
    headers = {"User-Agent": USER_AGENT}

    while True:

        raw_entry: Optional[_DownloadEntry] = entries_queue.get()

        # None is a sentinel to stop the thread, it should be consumed ONCE.
        if raw_entry is None:
            break

        conn_key = (raw_entry.https, raw_entry.host, raw_entry.port)
        entry = raw_entry.entry

        # Get connection from cache or create it.
        conn = conn_cache.get(conn_key)
        if conn is None:
            if raw_entry.https:
                conn = HTTPSConnection(raw_entry.host, raw_entry.port, context=ctx)
            else:
                conn = HTTPConnection(raw_entry.host, raw_entry.port)
            conn_cache[conn_key] = conn

        sha1 = None if entry.sha1 is None else hashlib.sha1()
        size = 0
        writing = False

        try:

            entry.dst.parent.mkdir(parents=True, exist_ok=True)
            conn.request("GET", raw_entry.target, headers=headers)
            res = conn.getresponse()

            if res.status != 200:

                # This loop is used to skip all bytes in the stream,
                # and allow further request.
                while res.readinto(buffer):
                    pass

                if res.status in (301, 302, 307, 308):
                    redirect_url = urllib.parse.urljoin(entry.url, res.headers["location"])
                    entries_queue.put(_DownloadEntry.from_url(redirect_url, entry))
                    continue

                result_queue.put(DownloadResultError(thread_id, entry, DownloadResultError.NOT_FOUND, None))
                continue

            with entry.dst.open("wb") as dst_fp:

                writing = True

                while True:

                    read_len = res.readinto(buffer)
                    if not read_len:
                        break

                    size += read_len
                    buffer_view = buffer[:read_len]
                    if sha1 is not None:
                        sha1.update(buffer_view)
                    dst_fp.write(buffer_view)

        except (ConnectionError, OSError, HTTPException) as e:

            # On errors, we just throw away the old connection and create a new one.
            # Raw but efficient way of resetting the potentially broken state...
            conn.close()
            del conn_cache[conn_key]

            # A truncated file would be trusted on the next install, remove it.
            if writing:
                try:
                    entry.dst.unlink()
                except FileNotFoundError:
                    pass

            result_queue.put(DownloadResultError(thread_id, entry, DownloadResultError.CONNECTION, e))
            continue

        # The file is intentionally kept on integrity errors.
        if entry.size is not None and size != entry.size:
            result_queue.put(DownloadResultError(thread_id, entry, DownloadResultError.INVALID_SIZE,
                IntegrityError(entry.dst, IntegrityError.SIZE, str(entry.size), str(size))))
        elif sha1 is not None and sha1.hexdigest() != entry.sha1:
            result_queue.put(DownloadResultError(thread_id, entry, DownloadResultError.INVALID_SHA1,
                IntegrityError(entry.dst, IntegrityError.SHA1, str(entry.sha1), sha1.hexdigest())))
        else:
            result_queue.put(DownloadResultSuccess(thread_id, entry, size))


class DownloadError(Exception):
    """Raised when the downloader failed to download some entries, the errors are given
    in the same order as they were received.
    """

    def __init__(self, errors: List[DownloadResultError]) -> None:
        self.errors = errors

    def __str__(self) -> str:
        return ", ".join(f"{error.entry.name} ({error.code})" for error in self.errors)
