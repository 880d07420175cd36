from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urljoin

from requests.structures import CaseInsensitiveDict

from .errors import InfiniteRedirectionLoopError, TooManyRedirectionsError
from .http_url import HttpUrl


DEFAULT_MAX_HEADERS_SIZE = 100 * 1024
DEFAULT_MAX_STATUS_LINE_LENGTH = 8 * 1024
DEFAULT_MAX_REDIRECTS = 100


class Method(Enum):
    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    CONNECT = "CONNECT"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"
    PATCH = "PATCH"


@dataclass
class Config:
    timeout: float | None = None
    max_headers_size: int = DEFAULT_MAX_HEADERS_SIZE
    max_status_line_length: int = DEFAULT_MAX_STATUS_LINE_LENGTH
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    detect_redirect_loops: bool = False


@dataclass
class Request:
    method: Method = Method.GET
    url: str = "http://localhost/"
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    body: bytes = b""
    config: Config = field(default_factory=Config)

    def __post_init__(self) -> None:
        if isinstance(self.method, str):
            self.method = Method(self.method.upper())
        if not isinstance(self.headers, CaseInsensitiveDict):
            self.headers = CaseInsensitiveDict(self.headers)
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")


class ParsedRequest:
    """A Request with its URL parsed, as it travels through redirects."""

    def __init__(self, request: Request):
        self.method: Method = request.method
        self.url: HttpUrl = HttpUrl.parse(request.url)
        self.headers: CaseInsensitiveDict = CaseInsensitiveDict(request.headers)
        self.body: bytes = request.body
        self.config: Config = request.config
        self.redirects: list[HttpUrl] = []

    def as_bytes(self) -> bytes:
        buffer = bytearray()

        request_line = f"{self.method.value} {self.url.path_and_query} HTTP/1.1\r\n"
        buffer += request_line.encode("utf-8")

        if "host" not in self.headers:
            buffer += f"Host: {self.url.host_header()}\r\n".encode("utf-8")

        for key, value in self.headers.items():
            buffer += f"{key}: {value}\r\n".encode("utf-8")

        if self.body and "content-length" not in self.headers:
            buffer += f"Content-Length: {len(self.body)}\r\n".encode("utf-8")

        buffer += b"\r\n"
        buffer += self.body
        return bytes(buffer)

    def redirect_to(self, location: str) -> None:
        """Point the request at `location`, resolved against the current URL."""
        target = urljoin(self.url.base_url() + self.url.path_and_query, location)
        new_url = HttpUrl.parse(target, redirected_from=self.url)

        self.redirects.append(self.url)
        self.url = new_url

        if len(self.redirects) > self.config.max_redirects:
            raise TooManyRedirectionsError(self.config.max_redirects)
        if self.config.detect_redirect_loops and new_url in self.redirects:
            raise InfiniteRedirectionLoopError(str(new_url))

    def see_other(self) -> None:
        # 303: the result should be fetched, not the request resubmitted.
        if self.method in (Method.POST, Method.PUT, Method.DELETE):
            self.method = Method.GET
            self.body = b""
            self.headers.pop("content-length", None)
