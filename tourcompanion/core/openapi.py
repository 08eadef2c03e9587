"""OpenAPI customization utilities.

Enriches the generated schema with tag descriptions and documents the
429 response every throttled operation may return, keeping documentation
concerns out of the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

TAGS_METADATA = [
    {
        "name": "Rate limits",
        "description": (
            "Fixed-window quotas keyed by client fingerprint "
            "(User-Agent, Accept-Language and timezone header)."
        ),
    },
    {
        "name": "Health",
        "description": "Liveness checks.",
    },
]

_TOO_MANY_REQUESTS = {
    "description": "Rate limit exceeded; retry after the Retry-After header.",
    "headers": {
        "Retry-After": {
            "description": "Seconds until the current window resets.",
            "schema": {"type": "integer"},
        },
        "X-RateLimit-Limit": {
            "description": "Maximum requests per window.",
            "schema": {"type": "integer"},
        },
        "X-RateLimit-Remaining": {
            "description": "Requests left in the current window.",
            "schema": {"type": "integer"},
        },
        "X-RateLimit-Reset": {
            "description": "Epoch seconds when the current window resets.",
            "schema": {"type": "integer"},
        },
    },
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation.

    - Adds tags metadata if not present
    - Documents a 429 response on every operation outside ``/health``
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in TAGS_METADATA:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            if path.endswith("/health"):
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj.setdefault("responses", {}).setdefault(
                        "429", _TOO_MANY_REQUESTS
                    )

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
