from typing import Protocol


class Transport(Protocol):
    def connect(self, host: str, port: int, deadline: float | None = None) -> None:
        ...

    def settimeout(self, timeout: float | None) -> None:
        ...

    def write(self, data: bytes) -> int:
        ...

    def read_into(self, buffer: bytearray | memoryview) -> int:
        ...

    def flush(self) -> None:
        ...

    def close(self) -> None:
        ...
