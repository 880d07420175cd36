import logging

from .errors import IoError, NonAsciiHostError, RedirectLocationMissingError
from .request import ParsedRequest
from .response import ResponseLazy
from .tcp_transport import TcpTransport
from .timeout import deadline_after, enforce_timeout, time_until
from .tls_transport import TlsTransport
from .transport import Transport


logger = logging.getLogger(__name__)

REDIRECT_STATUS_CODES = (301, 302, 303, 307)


class HttpStream:
    """
    A connected transport bound to the request deadline.

    The deadline is wall-clock, so the time left is recomputed and applied
    as the socket timeout right before every read and write.
    """

    def __init__(self, transport: Transport, deadline: float | None):
        self._transport: Transport = transport
        self._deadline: float | None = deadline

    def write_all(self, data: bytes) -> None:
        view = memoryview(data)
        while view:
            self._apply_deadline()
            sent = self._transport.write(view)
            if sent == 0:
                raise IoError("Connection closed while writing the request.")
            view = view[sent:]
        self._transport.flush()

    def read_into(self, buffer: bytearray | memoryview) -> int:
        self._apply_deadline()
        return self._transport.read_into(buffer)

    def close(self) -> None:
        self._transport.close()

    def _apply_deadline(self) -> None:
        self._transport.settimeout(time_until(self._deadline))


class Connection:
    """
    Sends one ParsedRequest, following redirects until a final response.

    The deadline is fixed when the connection is created and covers the
    whole redirect chain.
    """

    def __init__(self, request: ParsedRequest):
        self._request: ParsedRequest = request
        self._deadline: float | None = deadline_after(request.config.timeout)

    def send(self) -> ResponseLazy:
        while True:
            response = enforce_timeout(self._deadline, self._send_hop)
            if not self._follow_redirect(response):
                response.url = str(self._request.url)
                return response

    def _send_hop(self) -> ResponseLazy:
        url = self._request.url
        _ensure_ascii_host(url.host)
        request_bytes = self._request.as_bytes()

        logger.debug("Establishing %s connection to %s.", "TLS" if url.secure else "TCP", url.host)
        stream = HttpStream(self._open_transport(), self._deadline)
        try:
            logger.debug("Writing HTTP request.")
            stream.write_all(request_bytes)

            logger.debug("Reading HTTP response.")
            return ResponseLazy.from_stream(
                stream,
                self._request.config.max_headers_size,
                self._request.config.max_status_line_length,
                self._request.method,
            )
        except Exception:
            stream.close()
            raise

    def _open_transport(self) -> Transport:
        url = self._request.url
        transport: Transport = TlsTransport() if url.secure else TcpTransport()
        transport.connect(url.host, url.port, self._deadline)
        return transport

    def _follow_redirect(self, response: ResponseLazy) -> bool:
        """Rewrite the request for the next hop. False means `response` is final."""
        status_code = response.status_code
        if status_code not in REDIRECT_STATUS_CODES:
            return False

        # The body of a redirect is never read.
        response.close()

        location = response.headers.get("location")
        if location is None:
            raise RedirectLocationMissingError(status_code)

        logger.debug("Redirecting (%d) to: %s", status_code, location)
        self._request.redirect_to(location)
        if status_code == 303:
            self._request.see_other()
        return True


def _ensure_ascii_host(host: str) -> None:
    if not host.isascii():
        raise NonAsciiHostError(host)
