"""Wait page served while a tenant's workload starts.

The page reloads itself, so the browser polls the tenant URL until the
workload is ready and the request is forwarded.
"""

import html
from functools import lru_cache
from pathlib import Path
from string import Template

from fastapi.responses import HTMLResponse

from homeproxy.app.config import get_settings

TEMPLATE_PATH = Path(__file__).parent.parent / "templates" / "wait.html"


@lru_cache
def _template() -> Template:
    return Template(TEMPLATE_PATH.read_text(encoding="utf-8"))


def wait_page(identity: str) -> HTMLResponse:
    """Render the auto-reloading wait page for a tenant."""
    refresh = get_settings().proxy.wait_refresh_seconds
    content = _template().safe_substitute(identity=html.escape(identity), refresh=refresh)
    return HTMLResponse(
        content=content,
        status_code=200,
        headers={"Cache-Control": "no-store", "Retry-After": str(refresh)},
    )
