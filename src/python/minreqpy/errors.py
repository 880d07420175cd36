class MinreqError(Exception):
    """Base exception for the minreqpy library."""
    pass

# --- Transport Errors ---

class TransportError(MinreqError):
    """A generic error occurred in the transport layer."""
    pass

class AddressNotFoundError(TransportError):
    def __init__(self, host: str, port: int):
        super().__init__(f"could not resolve host '{host}:{port}' to a socket address")
        self.host = host
        self.port = port

class IoError(TransportError):
    """Reading, writing or connecting failed. The OS error, if any, is the __cause__."""
    pass

class DeadlineExceededError(IoError):
    def __init__(self, message: str = "the timeout of the request was reached"):
        super().__init__(message)

class NonAsciiHostError(TransportError):
    def __init__(self, host: str):
        super().__init__(f"non-ascii urls not supported: '{host}'")
        self.host = host

# --- Protocol Errors ---

class ProtocolError(MinreqError):
    """The server (or the URL) did not follow the HTTP rules this client expects."""
    pass

class InvalidProtocolError(ProtocolError):
    def __init__(self, url: str):
        super().__init__(f"url does not start with http:// or https://: '{url}'")
        self.url = url

class StatusLineOverflowError(ProtocolError):
    def __init__(self):
        super().__init__("the status line length surpassed max_status_line_length")

class HeadersOverflowError(ProtocolError):
    def __init__(self):
        super().__init__("the headers' total size surpassed max_headers_size")

class MalformedChunkLengthError(ProtocolError):
    def __init__(self):
        super().__init__("non-integer chunk length with transfer-encoding: chunked")

class MalformedChunkEndError(ProtocolError):
    def __init__(self):
        super().__init__("chunk did not end after reading the expected amount of bytes")

class MalformedContentLengthError(ProtocolError):
    def __init__(self, value: str):
        super().__init__(f"non-integer content length: '{value}'")
        self.value = value

# --- Redirect Errors ---

class RedirectError(MinreqError):
    pass

class RedirectLocationMissingError(RedirectError):
    def __init__(self, status_code: int):
        super().__init__(f"redirection ({status_code}) location header missing")
        self.status_code = status_code

class InfiniteRedirectionLoopError(RedirectError):
    def __init__(self, url: str):
        super().__init__(f"infinite redirection loop detected at '{url}'")
        self.url = url

class TooManyRedirectionsError(RedirectError):
    def __init__(self, max_redirects: int):
        super().__init__(f"too many redirections (over the max of {max_redirects})")
        self.max_redirects = max_redirects

# --- Encoding Errors ---

class EncodingError(MinreqError):
    pass

class InvalidUtf8InResponseError(EncodingError):
    def __init__(self):
        super().__init__("response contained invalid utf-8 where valid utf-8 was expected")

class InvalidUtf8InBodyError(EncodingError):
    pass

class JsonError(EncodingError):
    pass

# --- Invariant Errors ---

class OtherError(MinreqError):
    """Should never be raised. If it is, the message locates the broken invariant."""

    def __init__(self, message: str):
        super().__init__(
            f"error in minreqpy: please open an issue, include the following: '{message}'"
        )
        self.message = message

# --- JSON-RPC Errors ---

class RpcError(MinreqError):
    """A generic error occurred in the JSON-RPC client."""
    pass

class MissingUserPasswordError(RpcError):
    def __init__(self):
        super().__init__("missing user and/or password")

class InvalidCookieFileError(RpcError):
    def __init__(self, path: str):
        super().__init__(f"invalid cookie file: '{path}'")
        self.path = path

class JsonRpcError(RpcError):
    """The daemon answered with a JSON-RPC error object."""

    def __init__(self, code: int, message: str, data: object = None):
        super().__init__(f"JSON-RPC error {code}: {message}")
        self.code = code
        self.message = message
        self.data = data

class HttpStatusError(RpcError):
    def __init__(self, status_code: int, reason_phrase: str = ""):
        super().__init__(f"unexpected HTTP status: {status_code} {reason_phrase}".rstrip())
        self.status_code = status_code
        self.reason_phrase = reason_phrase

class UnexpectedStructureError(RpcError):
    pass

class NonceMismatchError(RpcError):
    def __init__(self, expected: object, got: object):
        super().__init__(f"response id {got!r} does not match request id {expected!r}")
        self.expected = expected
        self.got = got
