from dataclasses import dataclass
from enum import Enum

from .errors import InvalidProtocolError


HTTP_PORT = 80
HTTPS_PORT = 443
_MAX_PORT_VALUE = 0xFFFFFFFF


class _ParseState(Enum):
    HOST = 1
    PORT = 2
    PATH_AND_QUERY = 3
    FRAGMENT = 4


@dataclass(frozen=True)
class HttpUrl:
    """
    URL split into its parts, see RFC 3986 section 3:

        scheme "://" host [ ":" port ] path [ "?" query ] [ "#" fragment ]

    Userinfo is not supported (RFC 7230 section 2.7.1 forbids it in http URLs).
    """

    secure: bool
    host: str
    explicit_port: int | None
    path_and_query: str = "/"
    fragment: str | None = None

    @property
    def port(self) -> int:
        if self.explicit_port is not None:
            return self.explicit_port
        return HTTPS_PORT if self.secure else HTTP_PORT

    @property
    def port_is_implicit(self) -> bool:
        return self.explicit_port is None

    @classmethod
    def parse(cls, url: str, redirected_from: "HttpUrl | None" = None) -> "HttpUrl":
        if url.startswith("http://"):
            secure = False
            rest = url[len("http://"):]
        elif url.startswith("https://"):
            secure = True
            rest = url[len("https://"):]
        else:
            raise InvalidProtocolError(url)

        host: list[str] = []
        port: list[str] = []
        # Holds path and query until '#', then the fragment.
        resource: list[str] = []
        path_and_query: str | None = None
        state = _ParseState.HOST

        for c in rest:
            if state is _ParseState.HOST:
                if c in "/?":
                    # Tolerates typos like www.example.com?some=params
                    state = _ParseState.PATH_AND_QUERY
                    resource.append(c)
                elif c == ":":
                    state = _ParseState.PORT
                else:
                    host.append(c)
            elif state is _ParseState.PORT:
                if c in "/?":
                    state = _ParseState.PATH_AND_QUERY
                    resource.append(c)
                else:
                    port.append(c)
            elif state is _ParseState.PATH_AND_QUERY and c == "#":
                state = _ParseState.FRAGMENT
                path_and_query = "".join(resource)
                resource = []
            else:
                resource.append(c)

        if path_and_query is None:
            path_and_query = "".join(resource)
            fragment = None
        else:
            fragment = "".join(resource)

        # RFC 7231 section 7.1.2: a redirect without a fragment inherits the
        # fragment of the original request.
        if fragment is None and redirected_from is not None:
            fragment = redirected_from.fragment

        return cls(
            secure=secure,
            host="".join(host),
            explicit_port=_parse_port("".join(port)),
            path_and_query=path_and_query or "/",
            fragment=fragment,
        )

    def base_url(self) -> str:
        scheme = "https" if self.secure else "http"
        if self.explicit_port is None:
            return f"{scheme}://{self.host}"
        return f"{scheme}://{self.host}:{self.explicit_port}"

    def resource(self) -> str:
        if self.fragment is None:
            return self.path_and_query
        return f"{self.path_and_query}#{self.fragment}"

    def host_header(self) -> str:
        if self.explicit_port is None:
            return self.host
        return f"{self.host}:{self.explicit_port}"

    def __str__(self) -> str:
        return self.base_url() + self.resource()


def _parse_port(text: str) -> int | None:
    # Anything that is not a plain unsigned number leaves the port implicit.
    if not text or not (text.isascii() and text.isdigit()):
        return None
    value = int(text)
    if value > _MAX_PORT_VALUE:
        return None
    return value
