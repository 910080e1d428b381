from html import escape
from pathlib import Path
from string import Template

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, PlainTextResponse
from loguru import logger

PUBLIC_DIR = Path(__file__).resolve().parents[2] / "public"
STATIC_DIR = PUBLIC_DIR / "static"

router = APIRouter()


def render_index_page(site_key: str, template_path: Path = PUBLIC_DIR / "index.html") -> str:
    """Render the upload page once, with the Turnstile site key filled in."""
    template = Template(template_path.read_text(encoding="utf-8"))
    page = template.safe_substitute(site_key=escape(site_key, quote=True))
    logger.debug(f"Rendered index page from {template_path}")
    return page


@router.get("/", response_class=HTMLResponse)
@router.get("/index.html", response_class=HTMLResponse, include_in_schema=False)
def index(request: Request) -> HTMLResponse:
    return HTMLResponse(request.app.state.index_html)


@router.get("/healthz", response_class=PlainTextResponse)
def healthz() -> PlainTextResponse:
    return PlainTextResponse("OK")
