"""
Upload session handling.

One `UploadHandler.handle` call serves one upload request: it validates the
request shape, verifies the Turnstile token once, then streams every file part
of the multipart body into the storage backend under a session deadline. Files
fail independently; the aggregate outcome is classified by `summarize_session`.

The deadline is checked between parts and also cancels a save that is still
running when it passes. Reads from the body are bounded separately by the
reader's idle timeout. The CAPTCHA call is bounded only by the verifier's own
HTTP timeout.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
import secrets

from fastapi import Request
from loguru import logger

from src.core.exceptions import (
    AppError,
    CaptchaFailedError,
    CaptchaVerificationError,
    InvalidFilenameError,
    MethodNotAllowedError,
    StorageError,
    StreamReadError,
    UploadInterruptedError,
)
from src.schemas.schemas import UploadResult
from src.services.captcha import CaptchaVerifier
from src.services.filenames import sanitize_filename
from src.services.multipart_reader import MultipartPart, MultipartReader, parse_boundary
from src.storage.base import StorageBackend

TOKEN_HEADER = "X-Turnstile-Token"
UPLOAD_TIMEOUT = 4 * 60.0
READ_TIMEOUT = 5 * 60.0

CONNECTION_ISSUE_MESSAGE = (
    "Upload failed due to connection issues. "
    "Please check your internet connection and try again."
)


def new_session_id(now: datetime | None = None) -> str:
    """Millisecond timestamp plus a random suffix, e.g. `2024-05-01_13-45-10.123-9f2c1a`."""
    now = now or datetime.now()
    stamp = now.strftime("%Y-%m-%d_%H-%M-%S.") + f"{now.microsecond // 1000:03d}"
    return f"{stamp}-{secrets.token_hex(3)}"


@dataclass
class SessionDeadline:
    """Absolute deadline on the running event loop's clock."""

    when: float

    @classmethod
    def after(cls, seconds: float) -> "SessionDeadline":
        return cls(asyncio.get_running_loop().time() + seconds)

    def expired(self) -> bool:
        return asyncio.get_running_loop().time() >= self.when


@dataclass
class UploadSession:
    session_id: str
    saved: int = 0
    failed: int = 0
    last_error: Exception | None = None
    timed_out: bool = False

    def record_failure(self, error: Exception) -> None:
        self.failed += 1
        self.last_error = error


def summarize_session(session: UploadSession) -> UploadResult:  # noqa: PLR0911
    """Map the counters of a finished session to a status code and message."""

    def result(status_code: int, message: str) -> UploadResult:
        return UploadResult(
            session_id=session.session_id,
            status_code=status_code,
            message=message,
            saved=session.saved,
            failed=session.failed,
        )

    if session.timed_out:
        if session.saved > 0:
            return result(
                206,
                f"Upload partially completed: {session.saved} file(s) uploaded, "
                f"{session.failed} failed due to timeout",
            )
        return result(408, "Upload timed out")

    if session.saved == 0:
        if session.last_error is None:
            return result(400, "No files uploaded")
        if isinstance(session.last_error, UploadInterruptedError):
            return result(400, CONNECTION_ISSUE_MESSAGE)
        return result(400, f"Upload failed: {session.last_error}")

    if session.failed > 0:
        return result(
            206,
            f"Partially successful: {session.saved} file(s) uploaded, {session.failed} failed",
        )
    return result(201, f"Uploaded {session.saved} file(s)")


class UploadHandler:
    """Stream one request's files into storage. Dependencies are injected."""

    def __init__(
        self,
        storage: StorageBackend,
        verifier: CaptchaVerifier,
        timeout: float = UPLOAD_TIMEOUT,
        read_timeout: float | None = READ_TIMEOUT,
    ) -> None:
        self.storage = storage
        self.verifier = verifier
        self.timeout = timeout
        self.read_timeout = read_timeout

    async def handle(self, request: Request) -> UploadResult:
        """Process one upload request.

        Raises `AppError` subclasses for requests rejected before any file is
        read (wrong method, bad Content-Type, failed CAPTCHA); every other
        outcome is returned as an `UploadResult`.
        """
        if request.method != "POST":
            raise MethodNotAllowedError()
        boundary = parse_boundary(request.headers.get("content-type"))

        deadline = SessionDeadline.after(self.timeout)
        await self._verify_captcha(request)

        session = UploadSession(session_id=new_session_id())
        logger.info(f"Starting upload session: {session.session_id}")

        reader = MultipartReader(request.stream(), boundary, read_timeout=self.read_timeout)
        await self._consume(reader, session, deadline)

        logger.info(
            f"Upload session {session.session_id} summary: "
            f"{session.saved} saved, {session.failed} failed, "
            f"{reader.bytes_received} bytes received"
        )
        return summarize_session(session)

    async def _verify_captcha(self, request: Request) -> None:
        token = request.headers.get(TOKEN_HEADER, "")
        remote_ip = request.client.host if request.client else ""
        try:
            response = await self.verifier.verify(token, remote_ip)
        except CaptchaVerificationError as e:
            logger.warning(f"CAPTCHA verification error for {remote_ip}: {e.message}")
            raise CaptchaFailedError() from e
        if not response.success:
            logger.warning(f"CAPTCHA rejected for {remote_ip}: {response.error_codes}")
            raise CaptchaFailedError(details={"error_codes": response.error_codes})

    async def _consume(
        self, reader: MultipartReader, session: UploadSession, deadline: SessionDeadline
    ) -> None:
        sid = session.session_id
        while True:
            if deadline.expired():
                logger.warning(f"Upload cancelled or timed out for session {sid}")
                session.timed_out = True
                return

            try:
                part = await reader.next_part()
            except UploadInterruptedError as e:
                logger.warning(f"Connection interrupted during upload in session {sid}: {e}")
                session.record_failure(e)
                continue
            except StreamReadError as e:
                logger.error(f"Error reading multipart data in session {sid}: {e}")
                session.last_error = e
                return

            if part is None:
                logger.info(f"Upload session {sid} completed normally")
                return
            if not part.filename:
                continue

            await self._save_part(part, session, deadline)

    async def _save_part(
        self, part: MultipartPart, session: UploadSession, deadline: SessionDeadline
    ) -> None:
        sid = session.session_id
        filename = sanitize_filename(part.filename)
        if not filename:
            logger.warning(f"Skipping part with unusable filename {part.filename!r} in session {sid}")
            session.record_failure(InvalidFilenameError(details={"filename": part.filename}))
            return

        name = f"{sid}/{filename}"
        logger.info(f"Saving file: {name}")
        error: AppError
        try:
            async with asyncio.timeout_at(deadline.when):
                await self.storage.save(name, part)
        except TimeoutError:
            error = StorageError(message=f"saving {filename} did not finish before the deadline")
        except (StorageError, StreamReadError) as e:
            error = e
        except Exception as e:
            # Any other backend failure fails only this file
            logger.exception(f"Unexpected storage failure for {name} in session {sid}")
            session.record_failure(StorageError(message=str(e) or type(e).__name__))
            return
        else:
            session.saved += 1
            logger.success(f"Successfully saved file: {name}")
            return

        logger.error(f"Error saving file {name} in session {sid}: {error}")
        session.record_failure(error)
