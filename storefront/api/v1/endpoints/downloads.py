# storefront/api/v1/endpoints/downloads.py
import json
import logging
import re

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from storefront import crud
from storefront.api.deps import get_db
from storefront.core.errors import AppError, GoneError, NotFoundError, ValidationError
from storefront.services.download_tokens import is_well_formed
from storefront.utils.timestamps import to_epoch_millis, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/downloads", tags=["Downloads"])

FETCH_TIMEOUT = 30.0


async def fetch_template_file(url: str) -> httpx.Response:
    async with httpx.AsyncClient(timeout=FETCH_TIMEOUT, follow_redirects=True) as client:
        return await client.get(url)


def _safe_filename(title: str) -> str:
    name = re.sub(r"[^A-Za-z0-9._-]+", "-", title).strip("-").lower()
    return f"{name or 'template'}.json"


@router.get("/{token}")
async def download_template(token: str, db: Session = Depends(get_db)):
    """
    Redeem a download token and stream the template file as a JSON attachment.

    Tokens can be used any number of times until they expire; the first
    successful download is stamped on the token.
    """
    if not is_well_formed(token):
        raise ValidationError("Invalid download token", code="INVALID_TOKEN")

    download = crud.download_token.get_by_token(db, token=token)
    if download is None:
        raise NotFoundError("Download link not found", code="TOKEN_NOT_FOUND")

    if to_epoch_millis(download.expires_at) < to_epoch_millis(utcnow()):
        raise GoneError("Download link has expired", code="TOKEN_EXPIRED")

    template = crud.template.get(db, id=download.template_id)
    if template is None or not template.download_file_url:
        raise NotFoundError("Template file is not available", code="FILE_NOT_AVAILABLE")

    try:
        upstream = await fetch_template_file(template.download_file_url)
    except httpx.HTTPError as e:
        logger.error(f"Fetching file for template {template.id} failed: {e}")
        raise AppError("Failed to fetch template file", code="FILE_FETCH_FAILED", status_code=502)

    if upstream.status_code != 200:
        logger.error(
            f"File host returned {upstream.status_code} for template {template.id}"
        )
        raise AppError("Failed to fetch template file", code="FILE_FETCH_FAILED", status_code=502)

    content_type = upstream.headers.get("content-type", "")
    if "text/html" in content_type:
        logger.error(f"File URL for template {template.id} returned HTML")
        raise AppError("Template file is misconfigured", code="INVALID_FILE_FORMAT", status_code=500)

    try:
        json.loads(upstream.content)
    except ValueError:
        logger.error(f"File for template {template.id} is not valid JSON")
        raise AppError("Template file is not valid JSON", code="INVALID_FILE_FORMAT", status_code=500)

    if crud.download_token.mark_used(db, token=token):
        logger.info(f"Download token for order {download.order_id} redeemed for the first time")

    return Response(
        content=upstream.content,
        media_type="application/json",
        headers={
            "Content-Disposition": f'attachment; filename="{_safe_filename(template.title)}"',
            "Cache-Control": "no-store",
        },
    )
