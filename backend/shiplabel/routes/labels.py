"""
ShipLabel Backend - Label Route Handler
=========================================

What:  Handles POST /generate-label: form or JSON in, PDF attachment out.
How:   Decodes the body, delegates to LabelService, wraps the returned byte
       iterator in a StreamingResponse.
Who:   Called by the dashboard form and by JSON API clients.

Request Flow:
    1. Session gate (require_session) redirects anonymous callers to /
    2. Body decoded from application/json or form encoding
    3. LabelService.generate() validates, renders and starts the PDF
    4. 200 with Content-Type: application/pdf and
       Content-Disposition: attachment; filename="delivery-label-<id>.pdf"
    5. Body streamed; the barcode artifact is deleted when it ends

Error responses (handled by global exception handlers, plain text):
    HTTP 400: senderName / receiverName missing (ValidationError)
    HTTP 500: storage, composition or timeout failure before streaming
"""

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from shiplabel.dependencies import get_label_service, require_session
from shiplabel.exceptions import ValidationError
from shiplabel.services.label_service import LabelService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Labels"])


async def read_label_payload(request: Request) -> Dict[str, Any]:
    """
    Decode the submitted label fields from JSON or form encoding.

    Raises:
        ValidationError: malformed JSON or a JSON body that is not an object.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.split(";")[0].strip().lower() == "application/json":
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValidationError(
                message="Request body is not valid JSON",
                context={"error": str(e)},
            ) from e
        if not isinstance(payload, dict):
            raise ValidationError(message="Request body must be a JSON object")
        return payload

    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}


@router.post(
    "/generate-label",
    response_class=StreamingResponse,
    responses={
        200: {"content": {"application/pdf": {}}, "description": "Delivery label PDF"},
        400: {"description": "Missing sender or receiver name"},
        500: {"description": "Label could not be generated"},
    },
    summary="Generate a delivery label PDF",
)
async def generate_label(
    request: Request,
    _user_id: Optional[int] = Depends(require_session),
    service: LabelService = Depends(get_label_service),
) -> StreamingResponse:
    payload = await read_label_payload(request)
    document = await service.generate(payload)

    return StreamingResponse(
        document.body,
        media_type=document.media_type,
        headers=document.headers,
    )
