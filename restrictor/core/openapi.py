"""OpenAPI metadata and customization utilities.

Enriches the generated OpenAPI schema with tags metadata and documents the
optional ``X-API-Key`` header used to identify callers for rate limiting.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

TAGS_METADATA = [
    {
        "name": "Limits",
        "description": "Record events and inspect sliding-window counts per key.",
    },
    {
        "name": "Health",
        "description": "Liveness check and active limiter configuration.",
    },
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and the caller header scheme.

    - Injects components.securitySchemes for the ``X-API-Key`` header. It
      only identifies the caller for rate limiting, so no operation requires it
    - Adds tags metadata if not present
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "CallerKey",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Optional caller identity; requests without it are limited per client IP.",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in TAGS_METADATA:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
