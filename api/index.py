"""Vercel serverless entrypoint that writes listing descriptions.

POST a JSON body with ``title`` and ``category`` (plus optional ``location``,
``price``, ``imageBase64`` or ``imageUrl``) and get back
``{"description": "..."}``. The provider is picked by DESCRIPTION_PROVIDER.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from core.description import generate_description
from core.models import DescriptionError, DescriptionRequest, InvalidImageError
from core.moderation import check_content
from core.providers import get_provider

load_dotenv()
logging.basicConfig(level=logging.INFO)

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


def _response(status: int, body: Any) -> dict[str, Any]:
    if isinstance(body, str):
        return {"statusCode": status, "headers": dict(CORS_HEADERS), "body": body}
    return {
        "statusCode": status,
        "headers": {**CORS_HEADERS, "content-type": "application/json"},
        "body": json.dumps(body),
    }


def _read_field(request: Any, name: str, default: Any = None) -> Any:
    if isinstance(request, dict):
        return request.get(name, default)
    return getattr(request, name, default)


def _parse_body(raw: Any) -> dict[str, Any]:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    data = json.loads(raw) if isinstance(raw, str) else raw
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    return data


def handler(request):
    """Vercel Python serverless function handler."""
    method = (_read_field(request, "method") or _read_field(request, "httpMethod") or "POST").upper()
    if method == "OPTIONS":
        return _response(200, "ok")

    try:
        payload = _parse_body(_read_field(request, "body"))
    except ValueError as e:
        return _response(400, {"error": f"Invalid JSON body: {e}"})

    try:
        description_request = DescriptionRequest.from_payload(payload)
    except ValueError as e:
        return _response(400, {"error": str(e)})

    moderation = check_content(description_request.title)
    if not moderation.is_allowed:
        return _response(400, {"error": moderation.message, "flaggedWords": moderation.flagged_words})

    try:
        provider = get_provider(os.environ.get("DESCRIPTION_PROVIDER", "anthropic"))
        description = generate_description(description_request, provider)
    except InvalidImageError as e:
        return _response(400, {"error": str(e)})
    except DescriptionError as e:
        logger.error("Error generating description: %s", e)
        return _response(500, {"error": str(e)})
    except ValueError as e:
        logger.error("Description provider misconfigured: %s", e)
        return _response(500, {"error": str(e)})
    except Exception:
        logger.exception("Unexpected error generating description")
        return _response(500, {"error": "Failed to generate description"})

    return _response(200, {"description": description})
