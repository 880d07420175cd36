"""
A JSON-RPC 2.0 client for a node daemon, using minreqpy as its transport.

Only the envelope is modelled here: the caller picks the method name and the
parameters, and gets back the decoded `result` member.
"""

import base64
import itertools
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from .client import HttpClient
from .errors import (
    HttpStatusError,
    InvalidCookieFileError,
    JsonRpcError,
    MissingUserPasswordError,
    NonceMismatchError,
    UnexpectedStructureError,
)
from .request import Config
from .response import Response


logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"
DEFAULT_TIMEOUT_SECONDS = 15.0


class RpcRequest(BaseModel):
    jsonrpc: str = JSONRPC_VERSION
    id: int
    method: str
    params: list[Any] | dict[str, Any] = Field(default_factory=list)


class RpcErrorObject(BaseModel):
    code: int
    message: str
    data: Any = None


class RpcResponse(BaseModel):
    jsonrpc: str | None = None
    id: int | str | None = None
    result: Any = None
    error: RpcErrorObject | None = None


@dataclass(frozen=True)
class Auth:
    """Credentials for the daemon: a user and password, a cookie file, or nothing."""

    user: str | None = None
    password: str | None = None
    cookie_file: Path | None = None

    @classmethod
    def none(cls) -> "Auth":
        return cls()

    @classmethod
    def user_pass(cls, user: str, password: str) -> "Auth":
        return cls(user=user, password=password)

    @classmethod
    def cookie(cls, path: str | Path) -> "Auth":
        return cls(cookie_file=Path(path))

    def credentials(self) -> tuple[str, str] | None:
        if self.cookie_file is not None:
            return read_cookie_file(self.cookie_file)
        if self.user is None:
            return None
        return self.user, self.password or ""


def read_cookie_file(path: Path) -> tuple[str, str]:
    """Read `user:password` from the first line of a daemon cookie file."""
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise InvalidCookieFileError(str(path)) from e

    lines = content.splitlines()
    user, separator, password = (lines[0] if lines else "").partition(":")
    if not separator:
        raise InvalidCookieFileError(str(path))
    return user, password


class Client:
    def __init__(self, url: str, auth: Auth, timeout: float | None = DEFAULT_TIMEOUT_SECONDS):
        credentials = auth.credentials()
        if credentials is None:
            raise MissingUserPasswordError()

        user, password = credentials
        token = base64.b64encode(f"{user}:{password}".encode("utf-8")).decode("ascii")

        self._url: str = url
        self._authorization: str = f"Basic {token}"
        self._http: HttpClient = HttpClient(Config(timeout=timeout))
        self._nonce = itertools.count(1)

    def call(self, method: str, params: list[Any] | tuple[Any, ...] | dict[str, Any] = ()) -> Any:
        request_id = next(self._nonce)
        envelope = RpcRequest(
            id=request_id,
            method=method,
            params=params if isinstance(params, dict) else list(params),
        )

        logger.debug("Calling %s (id %d) on %s.", method, request_id, self._url)
        response = self._http.post(
            self._url,
            body=envelope.model_dump_json(),
            headers={
                "Content-Type": "application/json",
                "Authorization": self._authorization,
            },
        )
        return _unwrap(response, request_id)


def _unwrap(response: Response, request_id: int) -> Any:
    success = 200 <= response.status_code < 300

    try:
        envelope = RpcResponse.model_validate_json(response.body)
    except ValidationError as e:
        if not success:
            raise HttpStatusError(response.status_code, response.reason_phrase) from e
        raise UnexpectedStructureError(f"response is not a JSON-RPC envelope: {e}") from e

    # The daemon reports RPC failures with a non-2xx status and an error
    # object; the error object is the more useful of the two.
    if envelope.error is not None:
        raise JsonRpcError(envelope.error.code, envelope.error.message, envelope.error.data)
    if not success:
        raise HttpStatusError(response.status_code, response.reason_phrase)
    if envelope.id != request_id:
        raise NonceMismatchError(request_id, envelope.id)
    return envelope.result
