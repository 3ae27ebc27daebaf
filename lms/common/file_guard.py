import logging

import httpx
from fastapi import Request

from lms.config import MAX_SLIP_SIZE_BYTES
from lms.errors import BadRequestError

logger = logging.getLogger("file_guard")

ALLOWED_CONTENT_TYPES = ("image/jpeg", "image/png", "application/pdf")


async def check_remote_file(url: str):
    """HEAD the uploaded file and enforce the 2MB / jpeg-png-pdf limits.

    CDNs that refuse HEAD or time out are let through; the URL pattern
    check on the request body stays in force.
    """
    try:
        async with httpx.AsyncClient(timeout=5.0, follow_redirects=True) as client:
            res = await client.head(url)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning(f"File size check failed for {url}: {e}")
        return

    if res.status_code >= 400:
        raise BadRequestError("Unable to verify the uploaded file. Please check the URL.")

    content_length = res.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > MAX_SLIP_SIZE_BYTES:
        raise BadRequestError("File size exceeds the 2MB limit. Please upload a smaller file.")

    content_type = res.headers.get("content-type", "")
    if content_type and not any(t in content_type for t in ALLOWED_CONTENT_TYPES):
        raise BadRequestError("Invalid file type. Only jpg, jpeg, png, and pdf are allowed.")


async def verify_slip_file(request: Request):
    try:
        payload = await request.json()
    except ValueError:
        return  # body validation reports it
    slip_url = payload.get("slipUrl") if isinstance(payload, dict) else None
    # non-string values are left to body validation
    if isinstance(slip_url, str) and slip_url:
        await check_remote_file(slip_url)
