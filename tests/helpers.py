"""Test doubles and multipart builders shared across the test suite."""

import asyncio
from collections.abc import AsyncIterator

import pytest

from src.core.exceptions import CaptchaVerificationError, StorageError
from src.services.captcha import TurnstileResponse
from src.storage.base import ByteStream

BOUNDARY = "test-boundary-7d93a1"


class MemoryStorage:
    """Collects saved files in memory.

    Names ending with `fail_on` raise `StorageError`, names ending with `crash_on`
    raise a plain `RuntimeError`, and names ending with `slow_on` hang long
    enough for any test deadline to fire.
    """

    def __init__(
        self,
        fail_on: str | None = None,
        slow_on: str | None = None,
        crash_on: str | None = None,
    ) -> None:
        self.files: dict[str, bytes] = {}
        self.calls: list[str] = []
        self.fail_on = fail_on
        self.slow_on = slow_on
        self.crash_on = crash_on

    async def save(self, name: str, data: ByteStream) -> None:
        self.calls.append(name)
        if self.fail_on and name.endswith(self.fail_on):
            raise StorageError(message=f"disk full while writing {name}")
        if self.crash_on and name.endswith(self.crash_on):
            raise RuntimeError(f"backend bug while writing {name}")
        if self.slow_on and name.endswith(self.slow_on):
            await asyncio.sleep(30)
        self.files[name] = await read_all(data)


class StubVerifier:
    """Turnstile stand-in that accepts or rejects every token."""

    def __init__(self, success: bool = True, error: bool = False) -> None:
        self.success = success
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def verify(self, token: str, remote_ip: str) -> TurnstileResponse:
        self.calls.append((token, remote_ip))
        if self.error:
            raise CaptchaVerificationError(message="siteverify unreachable")
        codes = [] if self.success else ["invalid-input-response"]
        return TurnstileResponse(success=self.success, error_codes=codes)


class UnreachableVerifier:
    """Fails the test if the handler ever gets as far as CAPTCHA verification."""

    async def verify(self, token: str, remote_ip: str) -> TurnstileResponse:
        pytest.fail("CAPTCHA verification must not be reached")


class UnreachableStorage:
    async def save(self, name: str, data: ByteStream) -> None:
        pytest.fail("storage must not be reached")


def build_multipart(
    files: list[tuple[str, bytes]],
    fields: dict[str, str] | None = None,
    boundary: str = BOUNDARY,
    close: bool = True,
) -> bytes:
    """Encode form fields and files as a multipart/form-data body."""
    body = bytearray()
    for name, value in (fields or {}).items():
        body += f"--{boundary}\r\n".encode()
        body += f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode()
        body += value.encode() + b"\r\n"
    for filename, content in files:
        body += f"--{boundary}\r\n".encode()
        body += (
            f'Content-Disposition: form-data; name="file"; filename="{filename}"\r\n'
            "Content-Type: application/octet-stream\r\n\r\n"
        ).encode()
        body += content + b"\r\n"
    if close:
        body += f"--{boundary}--\r\n".encode()
    return bytes(body)


def multipart_headers(token: str = "test-token", boundary: str = BOUNDARY) -> dict[str, str]:
    return {
        "Content-Type": f"multipart/form-data; boundary={boundary}",
        "X-Turnstile-Token": token,
    }


async def stream_of(*chunks: bytes) -> AsyncIterator[bytes]:
    """Async byte stream yielding the given chunks, like `Request.stream()`."""
    for chunk in chunks:
        yield chunk


def split(data: bytes, size: int) -> list[bytes]:
    return [data[i : i + size] for i in range(0, len(data), size)]


async def read_all(data: ByteStream) -> bytes:
    return b"".join([chunk async for chunk in data])
