"""
Upload API endpoint.

Accepts a multipart body with one or more files, gated by a Turnstile token in
the `X-Turnstile-Token` header. Responses are plain text; see
`src.services.upload_service.summarize_session` for the status codes.
"""

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from src.api.deps import UploadHandlerDep

router = APIRouter()

# Every method is routed here so that the handler answers non-POST requests itself
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


@router.api_route("/upload", methods=ALL_METHODS, response_class=PlainTextResponse)
async def upload_files(request: Request, handler: UploadHandlerDep) -> PlainTextResponse:
    """Stream the uploaded files of one request into storage."""
    result = await handler.handle(request)
    return PlainTextResponse(
        result.message, status_code=result.status_code, headers=result.headers()
    )
