import socket
import threading
import time
from queue import Queue
from unittest.mock import patch

import pytest

from http_server import read_request, request_line

from minreqpy import client as minreq
from minreqpy.client import HttpClient
from minreqpy.errors import (
    AddressNotFoundError,
    DeadlineExceededError,
    InfiniteRedirectionLoopError,
    IoError,
    NonAsciiHostError,
    RedirectLocationMissingError,
    TooManyRedirectionsError,
)
from minreqpy.request import Config, Method, Request
from minreqpy.response import Response, ResponseLazy


OK_RESPONSE = b"HTTP/1.1 200 OK\r\nContent-Length: 7\r\n\r\nsuccess"


def test_get_request_succeeds(server_factory):
    request_queue = Queue()

    def handler(sock):
        request_queue.put(read_request(sock))
        sock.sendall(OK_RESPONSE)

    with server_factory(handler) as details:
        res = HttpClient().get(f"{details.base_url}/test?x=1")

    assert isinstance(res, Response)
    assert res.status_code == 200
    assert res.body == b"success"
    assert res.url == f"{details.base_url}/test?x=1"

    captured = request_queue.get(timeout=1.0)
    assert captured == (
        b"GET /test?x=1 HTTP/1.1\r\n"
        b"Host: " + f"{details.host}:{details.port}".encode("ascii") + b"\r\n"
        b"\r\n"
    )


def test_post_request_sends_body(server_factory):
    request_queue = Queue()

    def handler(sock):
        request_queue.put(read_request(sock))
        sock.sendall(OK_RESPONSE)

    with server_factory(handler) as details:
        res = HttpClient().post(f"{details.base_url}/submit", body=b'{"a": 1}',
                                headers={"Content-Type": "application/json"})

    assert res.status_code == 200
    captured = request_queue.get(timeout=1.0)
    assert request_line(captured) == b"POST /submit HTTP/1.1"
    assert b"Content-Type: application/json\r\n" in captured
    assert b"Content-Length: 8\r\n" in captured
    assert captured.endswith(b'\r\n\r\n{"a": 1}')


def test_module_level_helpers(server_factory):
    with server_factory(lambda sock: (read_request(sock), sock.sendall(OK_RESPONSE))) as details:
        res = minreq.get(f"{details.base_url}/")

    assert res.as_str() == "success"


def test_chunked_response_over_socket(server_factory):
    chunks = [b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\n\r\n", b"4\r\nWi", b"ki\r\n5\r\npedia\r\n", b"0\r\n\r\n"]

    def handler(sock):
        read_request(sock)
        for chunk in chunks:
            sock.sendall(chunk)
            time.sleep(0.01)

    with server_factory(handler) as details:
        res = HttpClient().get(f"{details.base_url}/")

    assert res.body == b"Wikipedia"


def test_lazy_response_streams_large_body(server_factory):
    body = bytes(range(256)) * 400

    def handler(sock):
        read_request(sock)
        sock.sendall(b"HTTP/1.1 200 OK\r\nContent-Length: %d\r\n\r\n" % len(body) + body)

    with server_factory(handler) as details:
        lazy = HttpClient().send_lazy(Request(url=f"{details.base_url}/big"))
        assert isinstance(lazy, ResponseLazy)
        pieces = list(lazy)

    assert len(pieces) > 1
    assert b"".join(pieces) == body


def test_head_request_has_no_body(server_factory):
    def handler(sock):
        read_request(sock)
        sock.sendall(b"HTTP/1.1 200 OK\r\nContent-Length: 1000\r\n\r\n")

    with server_factory(handler) as details:
        res = HttpClient(Config(timeout=5)).head(f"{details.base_url}/")

    assert res.status_code == 200
    assert res.headers["content-length"] == "1000"
    assert res.body == b""


# --- Redirects ---

def redirecting_handler(routes, request_queue):
    def handler(sock):
        raw = read_request(sock)
        request_queue.put(raw)
        path = request_line(raw).split(b" ")[1]
        sock.sendall(routes.get(path, OK_RESPONSE))
    return handler


@pytest.mark.parametrize("method", [Method.POST, Method.PUT, Method.DELETE])
def test_see_other_redirect_downgrades_to_get(server_factory, method):
    request_queue = Queue()
    routes = {b"/start": b"HTTP/1.1 303 See Other\r\nLocation: /ok\r\nContent-Length: 0\r\n\r\n"}

    with server_factory(redirecting_handler(routes, request_queue)) as details:
        res = HttpClient().request(method, f"{details.base_url}/start", body=b"payload")

    assert res.status_code == 200
    assert res.url == f"{details.base_url}/ok"
    first = request_queue.get(timeout=1.0)
    second = request_queue.get(timeout=1.0)
    assert request_line(first) == f"{method.value} /start HTTP/1.1".encode("ascii")
    assert request_line(second) == b"GET /ok HTTP/1.1"
    assert b"payload" not in second


@pytest.mark.parametrize("status", [301, 302, 307])
def test_other_redirects_keep_method_and_body(server_factory, status):
    request_queue = Queue()
    routes = {b"/start": b"HTTP/1.1 %d Moved\r\nLocation: /ok\r\nContent-Length: 0\r\n\r\n" % status}

    with server_factory(redirecting_handler(routes, request_queue)) as details:
        res = HttpClient().post(f"{details.base_url}/start", body=b"payload")

    assert res.status_code == 200
    request_queue.get(timeout=1.0)
    second = request_queue.get(timeout=1.0)
    assert request_line(second) == b"POST /ok HTTP/1.1"
    assert second.endswith(b"\r\n\r\npayload")


def test_redirect_body_is_not_read(server_factory):
    request_queue = Queue()
    routes = {b"/start": b"HTTP/1.1 302 Found\r\nLocation: /ok\r\nContent-Length: 1000000\r\n\r\npartial"}

    with server_factory(redirecting_handler(routes, request_queue)) as details:
        res = HttpClient(Config(timeout=5)).get(f"{details.base_url}/start")

    assert res.body == b"success"


def test_final_url_keeps_fragment_across_redirects(server_factory):
    request_queue = Queue()
    routes = {
        b"/a": b"HTTP/1.1 301 Moved Permanently\r\nLocation: /b\r\nContent-Length: 0\r\n\r\n",
        b"/b": b"HTTP/1.1 302 Found\r\nLocation: /c?page=2\r\nContent-Length: 0\r\n\r\n",
    }

    with server_factory(redirecting_handler(routes, request_queue)) as details:
        res = HttpClient().get(f"{details.base_url}/a#frag")

    assert res.url == f"{details.base_url}/c?page=2#frag"
    paths = [request_line(request_queue.get(timeout=1.0)) for _ in range(3)]
    assert paths == [b"GET /a HTTP/1.1", b"GET /b HTTP/1.1", b"GET /c?page=2 HTTP/1.1"]


def test_too_many_redirects(server_factory):
    request_queue = Queue()
    routes = {b"/loop": b"HTTP/1.1 302 Found\r\nLocation: /loop\r\nContent-Length: 0\r\n\r\n"}

    with server_factory(redirecting_handler(routes, request_queue)) as details:
        with pytest.raises(TooManyRedirectionsError):
            HttpClient(Config(max_redirects=3)).get(f"{details.base_url}/loop")

    assert request_queue.qsize() == 4


def test_redirect_loop_detection(server_factory):
    request_queue = Queue()
    routes = {
        b"/a": b"HTTP/1.1 302 Found\r\nLocation: /b\r\nContent-Length: 0\r\n\r\n",
        b"/b": b"HTTP/1.1 302 Found\r\nLocation: /a\r\nContent-Length: 0\r\n\r\n",
    }

    with server_factory(redirecting_handler(routes, request_queue)) as details:
        with pytest.raises(InfiniteRedirectionLoopError):
            HttpClient(Config(detect_redirect_loops=True)).get(f"{details.base_url}/a")

    assert request_queue.qsize() == 2


def test_redirect_without_location_fails(server_factory):
    request_queue = Queue()
    routes = {b"/start": b"HTTP/1.1 302 Found\r\nContent-Length: 0\r\n\r\n"}

    with server_factory(redirecting_handler(routes, request_queue)) as details:
        with pytest.raises(RedirectLocationMissingError) as excinfo:
            HttpClient().get(f"{details.base_url}/start")

    assert excinfo.value.status_code == 302
    assert request_queue.qsize() == 1


def test_redirects_work_with_deadline(server_factory):
    request_queue = Queue()
    routes = {b"/start": b"HTTP/1.1 307 Temporary Redirect\r\nLocation: /ok\r\nContent-Length: 0\r\n\r\n"}

    with server_factory(redirecting_handler(routes, request_queue)) as details:
        res = HttpClient(Config(timeout=5)).get(f"{details.base_url}/start")

    assert res.body == b"success"
    assert res.url == f"{details.base_url}/ok"


# --- Deadlines ---

def test_slow_server_hits_deadline(server_factory):
    release = threading.Event()

    def handler(sock):
        read_request(sock)
        release.wait(timeout=5)

    with server_factory(handler) as details:
        start = time.monotonic()
        with pytest.raises(DeadlineExceededError):
            HttpClient(Config(timeout=0.3)).get(f"{details.base_url}/")
        elapsed = time.monotonic() - start
        release.set()

    assert elapsed < 2.0


def test_zero_timeout_fails_without_network_access():
    with patch("socket.getaddrinfo") as getaddrinfo:
        with pytest.raises(DeadlineExceededError):
            HttpClient(Config(timeout=0)).get("http://127.0.0.1:1/")

    getaddrinfo.assert_not_called()


def test_deadline_error_is_an_io_error():
    with pytest.raises(IoError):
        HttpClient(Config(timeout=0)).get("http://127.0.0.1:1/")


def test_non_ascii_host_fails_before_connecting():
    with patch("socket.getaddrinfo") as getaddrinfo:
        with pytest.raises(NonAsciiHostError):
            HttpClient().get("http://bücher.example/")

    getaddrinfo.assert_not_called()


def test_connection_refused_is_io_error():
    with socket.socket() as probe:
        probe.bind(("127.0.0.1", 0))
        port = probe.getsockname()[1]

    with pytest.raises(IoError):
        HttpClient(Config(timeout=5)).get(f"http://127.0.0.1:{port}/")


def test_https_urls_use_tls_transport():
    with patch("minreqpy.connection.TlsTransport") as tls_transport:
        tls_transport.return_value.connect.side_effect = IoError("handshake failed")

        with pytest.raises(IoError, match="handshake failed"):
            HttpClient().get("https://node.example/")

    tls_transport.return_value.connect.assert_called_once_with("node.example", 443, None)


@pytest.mark.parametrize("config", [Config(), Config(timeout=5)])
def test_unencodable_host_is_address_not_found(config):
    with pytest.raises(AddressNotFoundError):
        HttpClient(config).get("http://a..b/")


@pytest.mark.parametrize("config", [Config(), Config(timeout=5)])
def test_port_above_range_does_not_wrap_around(server_factory, config):
    with server_factory(lambda sock: (read_request(sock), sock.sendall(OK_RESPONSE))) as details:
        with pytest.raises(AddressNotFoundError):
            HttpClient(config).get(f"http://{details.host}:{details.port + 65536}/")

    assert details.connections == 0
