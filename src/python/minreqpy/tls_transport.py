import logging
import ssl

from .errors import TransportError, DeadlineExceededError
from .tcp_transport import TcpTransport, translate_os_error
from .timeout import time_until


logger = logging.getLogger(__name__)


class TlsTransport(TcpTransport):
    """TCP transport with a TLS session on top. Reads and writes are inherited."""

    def __init__(self, context: ssl.SSLContext | None = None) -> None:
        super().__init__()
        self._context: ssl.SSLContext = context or ssl.create_default_context()

    def connect(self, host: str, port: int, deadline: float | None = None) -> None:
        super().connect(host, port, deadline)
        if self._sock is None:
            raise TransportError("TCP connect returned without a socket.")

        try:
            self._sock.settimeout(time_until(deadline))
            self._sock = self._context.wrap_socket(self._sock, server_hostname=host)
        except DeadlineExceededError:
            self.close()
            raise
        except OSError as e:
            self.close()
            raise translate_os_error("TLS handshake", e) from e

        logger.debug("TLS session with %s established (%s).", host, self._sock.version())
