"""OpenAPI metadata and customization utilities.

Enriches the generated OpenAPI schema with:
- Tags metadata
- API Key (``X-API-Key``) and spreadsheet token (``X-Sheets-Access-Token``)
  security schemes, with the health endpoint exempted

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_SECURITY_SCHEMES = {
    "ApiKeyAuth": {
        "type": "apiKey",
        "in": "header",
        "name": "X-API-Key",
        "description": "Provide your API key via the X-API-Key header.",
    },
    "SheetsAccessToken": {
        "type": "apiKey",
        "in": "header",
        "name": "X-Sheets-Access-Token",
        "description": "OAuth access token used for spreadsheet reads and writes.",
    },
}

_TAGS = [
    {"name": "Annotations", "description": "Annotation logging."},
    {"name": "Admin", "description": "Formula queue introspection and manual refreshes."},
    {"name": "Health", "description": "Liveness checks."},
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and security schemes."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        security_schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        for name, scheme in _SECURITY_SCHEMES.items():
            security_schemes.setdefault(name, scheme)

        schema.setdefault("security", [{"ApiKeyAuth": []}])

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        tags.extend(t for t in _TAGS if t["name"] not in existing_tag_names)

        for path, methods in schema.get("paths", {}).items():
            if not path.endswith("/health"):
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj["security"] = []

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
