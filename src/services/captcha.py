"""Cloudflare Turnstile token verification."""

from typing import Protocol

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from src.core.exceptions import CaptchaVerificationError

SITEVERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"


class TurnstileResponse(BaseModel):
    """Subset of the siteverify response the service cares about."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = False
    error_codes: list[str] = Field(default_factory=list, alias="error-codes")
    hostname: str | None = None
    challenge_ts: str | None = None
    action: str | None = None


class CaptchaVerifier(Protocol):
    async def verify(self, token: str, remote_ip: str) -> TurnstileResponse: ...


class TurnstileVerifier:
    """Verify tokens against the siteverify endpoint. Safe to share between requests."""

    def __init__(
        self,
        secret: str,
        client: httpx.AsyncClient | None = None,
        url: str = SITEVERIFY_URL,
        timeout: float = 10.0,
    ) -> None:
        self._secret = secret
        self._url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def verify(self, token: str, remote_ip: str) -> TurnstileResponse:
        if not token:
            logger.debug("Empty Turnstile token, skipping siteverify call")
            return TurnstileResponse(success=False, error_codes=["missing-input-response"])

        payload = {"secret": self._secret, "response": token}
        if remote_ip:
            payload["remoteip"] = remote_ip

        try:
            response = await self._client.post(self._url, data=payload)
            response.raise_for_status()
            result = TurnstileResponse.model_validate(response.json())
        except httpx.HTTPError as e:
            msg = f"Turnstile siteverify request failed: {e!s}"
            raise CaptchaVerificationError(message=msg) from e
        except ValueError as e:
            msg = f"Turnstile siteverify returned an invalid response: {e!s}"
            raise CaptchaVerificationError(message=msg) from e

        if not result.success:
            logger.info(f"Turnstile rejected token: {result.error_codes}")
        return result

    async def aclose(self) -> None:
        await self._client.aclose()
