from typing import Annotated

from fastapi import Depends, Request

from src.core.config import Settings
from src.services.captcha import CaptchaVerifier
from src.services.upload_service import UploadHandler
from src.storage.base import StorageBackend


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> StorageBackend:
    """Provide the storage backend created at startup."""
    return request.app.state.storage


def get_captcha_verifier(request: Request) -> CaptchaVerifier:
    """Provide the shared Turnstile verifier created at startup."""
    return request.app.state.verifier


SettingsDep = Annotated[Settings, Depends(get_settings)]
StorageDep = Annotated[StorageBackend, Depends(get_storage)]
VerifierDep = Annotated[CaptchaVerifier, Depends(get_captcha_verifier)]


def get_upload_handler(
    storage: StorageDep, verifier: VerifierDep, settings: SettingsDep
) -> UploadHandler:
    return UploadHandler(
        storage,
        verifier,
        timeout=settings.upload_timeout,
        read_timeout=settings.read_timeout,
    )


UploadHandlerDep = Annotated[UploadHandler, Depends(get_upload_handler)]
