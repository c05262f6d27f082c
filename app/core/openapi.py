"""OpenAPI customization utilities.

Enriches the generated OpenAPI schema with:
- Tags metadata
- The optional admin secret scheme (``X-Delete-Secret``), attached only to the
  operations guarded by the admin gate

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from app.core.auth import ADMIN_SECRET_HEADER

ADMIN_SCHEME_NAME = "AdminSecret"

# (path, method) pairs guarded by the admin gate
_ADMIN_OPERATIONS = {
    ("/api/v1/links", "get"),
    ("/api/v1/links/{link_id}", "delete"),
}

_TAGS = [
    {"name": "Links", "description": "Create, list and delete short links."},
    {"name": "QR", "description": "Render QR codes for arbitrary URLs."},
    {"name": "Redirect", "description": "Follow short codes and render their QR codes."},
    {"name": "Health", "description": "Liveness checks."},
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and the admin scheme."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            ADMIN_SCHEME_NAME,
            {
                "type": "apiKey",
                "in": "header",
                "name": ADMIN_SECRET_HEADER,
                "description": "Admin secret; required only when the server configures one.",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in _TAGS:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            for method, operation in methods.items():
                if (path, method) in _ADMIN_OPERATIONS and isinstance(operation, dict):
                    operation["security"] = [{ADMIN_SCHEME_NAME: []}, {}]

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
