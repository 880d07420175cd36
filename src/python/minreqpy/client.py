from collections.abc import Iterable, Mapping

from .connection import Connection
from .request import Config, Method, ParsedRequest, Request
from .response import Response, ResponseLazy


Headers = Mapping[str, str] | Iterable[tuple[str, str]]


class HttpClient:
    def __init__(self, config: Config | None = None):
        self._config: Config = config or Config()

    def send(self, request: Request) -> Response:
        return Response.from_lazy(self.send_lazy(request))

    def send_lazy(self, request: Request) -> ResponseLazy:
        return Connection(ParsedRequest(request)).send()

    def request(
        self,
        method: Method | str,
        url: str,
        headers: Headers | None = None,
        body: bytes | str = b"",
        config: Config | None = None,
    ) -> Response:
        request = Request(
            method=method,
            url=url,
            headers=headers or {},
            body=body,
            config=config or self._config,
        )
        return self.send(request)

    def get(self, url: str, headers: Headers | None = None, config: Config | None = None) -> Response:
        return self.request(Method.GET, url, headers, config=config)

    def head(self, url: str, headers: Headers | None = None, config: Config | None = None) -> Response:
        return self.request(Method.HEAD, url, headers, config=config)

    def post(self, url: str, body: bytes | str = b"", headers: Headers | None = None,
             config: Config | None = None) -> Response:
        return self.request(Method.POST, url, headers, body, config)

    def put(self, url: str, body: bytes | str = b"", headers: Headers | None = None,
            config: Config | None = None) -> Response:
        return self.request(Method.PUT, url, headers, body, config)

    def patch(self, url: str, body: bytes | str = b"", headers: Headers | None = None,
              config: Config | None = None) -> Response:
        return self.request(Method.PATCH, url, headers, body, config)

    def delete(self, url: str, headers: Headers | None = None, config: Config | None = None) -> Response:
        return self.request(Method.DELETE, url, headers, config=config)


# --- Module-level helpers, sharing one stateless client ---

_default_client = HttpClient()


def request(method: Method | str, url: str, headers: Headers | None = None,
            body: bytes | str = b"", config: Config | None = None) -> Response:
    return _default_client.request(method, url, headers, body, config)


def get(url: str, headers: Headers | None = None, config: Config | None = None) -> Response:
    return _default_client.get(url, headers, config)


def head(url: str, headers: Headers | None = None, config: Config | None = None) -> Response:
    return _default_client.head(url, headers, config)


def post(url: str, body: bytes | str = b"", headers: Headers | None = None,
         config: Config | None = None) -> Response:
    return _default_client.post(url, body, headers, config)


def put(url: str, body: bytes | str = b"", headers: Headers | None = None,
        config: Config | None = None) -> Response:
    return _default_client.put(url, body, headers, config)


def patch(url: str, body: bytes | str = b"", headers: Headers | None = None,
          config: Config | None = None) -> Response:
    return _default_client.patch(url, body, headers, config)


def delete(url: str, headers: Headers | None = None, config: Config | None = None) -> Response:
    return _default_client.delete(url, headers, config)
