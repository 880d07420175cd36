import logging
import socket

from .errors import (
    TransportError,
    AddressNotFoundError,
    DeadlineExceededError,
    IoError,
)
from .timeout import time_until
from .transport import Transport


logger = logging.getLogger(__name__)

MAX_PORT = 0xFFFF


def translate_os_error(action: str, e: OSError) -> IoError:
    # A blocking socket whose timeout ran out raises TimeoutError; a zero
    # timeout makes it non-blocking and it raises BlockingIOError instead.
    if isinstance(e, (TimeoutError, BlockingIOError)):
        return DeadlineExceededError()
    return IoError(f"Socket {action} failed: {e}")


class TcpTransport(Transport):
    def __init__(self) -> None:
        self._sock: socket.socket | None = None

    def connect(self, host: str, port: int, deadline: float | None = None) -> None:
        if self._sock is not None:
            raise TransportError("Transport is already connected.")

        # getaddrinfo wraps larger port numbers around instead of rejecting them.
        if not 0 <= port <= MAX_PORT:
            raise AddressNotFoundError(host, port)

        try:
            candidates = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
        except (socket.gaierror, UnicodeError) as e:
            # UnicodeError: the host cannot be IDNA-encoded (e.g. an empty label).
            raise AddressNotFoundError(host, port) from e

        # Try every resolved address, keep the first that connects and report
        # the last failure if none does.
        last_error: OSError | None = None
        for family, sock_type, proto, _, sockaddr in candidates:
            timeout = time_until(deadline)
            sock = socket.socket(family, sock_type, proto)
            try:
                sock.settimeout(timeout)
                sock.connect(sockaddr)
            except OSError as e:
                sock.close()
                last_error = e
                logger.debug("Connecting to %s failed: %s", sockaddr, e)
                continue

            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            self._sock = sock
            logger.debug("Connected to %s:%d via %s.", host, port, sockaddr)
            return

        if last_error is None:
            raise AddressNotFoundError(host, port)
        raise translate_os_error("connection", last_error) from last_error

    def settimeout(self, timeout: float | None) -> None:
        if self._sock is None:
            raise TransportError("Cannot set a timeout on a disconnected transport.")
        self._sock.settimeout(timeout)

    def write(self, data: bytes) -> int:
        if self._sock is None:
            raise TransportError("Cannot write on a disconnected transport.")

        try:
            return self._sock.send(data)
        except OSError as e:
            raise translate_os_error("write", e) from e

    def read_into(self, buffer: bytearray | memoryview) -> int:
        if self._sock is None:
            raise TransportError("Cannot read from a disconnected transport.")

        try:
            return self._sock.recv_into(buffer)
        except OSError as e:
            raise translate_os_error("read", e) from e

    def flush(self) -> None:
        # Sockets are unbuffered, send() already handed the bytes to the kernel.
        if self._sock is None:
            raise TransportError("Cannot flush a disconnected transport.")

    def close(self) -> None:
        if self._sock is not None:
            try:
                self._sock.close()
            finally:
                self._sock = None
