"""Pydantic schemas shared between the upload service and the API layer."""

from pydantic import BaseModel


class UploadResult(BaseModel):
    """Classified outcome of one upload session."""

    session_id: str
    status_code: int
    message: str
    saved: int
    failed: int

    def headers(self) -> dict[str, str]:
        return {
            "X-Upload-Session": self.session_id,
            "X-Files-Saved": str(self.saved),
            "X-Files-Failed": str(self.failed),
        }
