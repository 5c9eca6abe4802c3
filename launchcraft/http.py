"""HTTP primitives used to fetch the version manifest, versions metadata and assets
indexes. Bulk files are not fetched here, see the `download` module.
"""

from urllib.error import HTTPError, URLError
from http.client import HTTPResponse
import urllib.request
import hashlib
import ssl

import certifi

from .util import IntegrityError
from . import LAUNCHER_NAME, LAUNCHER_VERSION

from typing import Optional, Dict


__all__ = ["HttpResponse", "HttpError", "http_get", "ssl_context", "USER_AGENT"]


USER_AGENT = f"{LAUNCHER_NAME}/{LAUNCHER_VERSION}"


def ssl_context() -> ssl.SSLContext:
    """Create the SSL context used by all HTTPS connections, using certifi's bundle of
    root certificates.
    """
    return ssl.create_default_context(cafile=certifi.where())


class HttpResponse:
    """A fully read HTTP response, with its status, body and headers. A response with
    status 0 stands for a network error, it has no body nor headers.
    """

    __slots__ = "status", "data", "headers"

    def __init__(self, status: int, data: bytes, headers: Dict[str, str]) -> None:
        self.status = status
        self.data = data
        self.headers = headers

    @classmethod
    def from_response(cls, res: HTTPResponse) -> "HttpResponse":
        return cls(res.status, res.read(), dict(res.getheaders()))

    def __repr__(self) -> str:
        return f"<HttpResponse {self.status} ({len(self.data)} bytes)>"


class HttpError(Exception):
    """Raised when a request fails, either because of a non-2xx status or because the
    server could not be reached, in which case the response has a status of 0. The
    underlying error is given in `reason`.
    """

    def __init__(self, res: HttpResponse, url: str, reason: URLError) -> None:
        self.res = res
        self.url = url
        self.reason = reason

    def __str__(self) -> str:
        return f"GET {self.url}: {self.res.status or self.reason}"


def http_get(url: str, *,
    headers: Optional[Dict[str, str]] = None,
    accept: Optional[str] = None,
    sha1: Optional[str] = None
) -> HttpResponse:
    """Make a synchronous GET request and read the whole response. Redirections are
    followed by urllib.

    :param url: The URL, HTTPS ones are verified against certifi's certificates.
    :param headers: Additional request headers.
    :param accept: Value of the Accept header.
    :param sha1: If given, the response body must have this sha1.
    :return: The response, of status 2xx.
    :raises HttpError: If the status is not 2xx or the server could not be reached.
    :raises IntegrityError: If the body doesn't match the expected sha1.
    """

    req_headers = {"User-Agent": USER_AGENT}
    if accept is not None:
        req_headers["Accept"] = accept
    if headers is not None:
        req_headers.update(headers)

    ctx = ssl_context() if url.startswith("https:") else None

    try:
        with urllib.request.urlopen(urllib.request.Request(url, headers=req_headers), context=ctx) as res:
            response = HttpResponse.from_response(res)
    except HTTPError as error:
        raise HttpError(HttpResponse(error.code, b"", dict(error.headers or {})), url, error)
    except URLError as error:
        raise HttpError(HttpResponse(0, b"", {}), url, error)

    if sha1 is not None:
        actual_sha1 = hashlib.sha1(response.data).hexdigest()
        if actual_sha1 != sha1:
            raise IntegrityError(url, IntegrityError.SHA1, sha1, actual_sha1)

    return response
