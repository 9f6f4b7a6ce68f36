"""API blueprint package aggregating versioned endpoints."""

from __future__ import annotations

from flask import Flask


def init_app(app: Flask) -> None:
    """Register the available API versions on the Flask app.

    Each version package exposes ``REGISTRY``: ``(blueprint, relative_prefix)``
    pairs mounted beneath ``{API_BASE_PREFIX}/{API_VERSION}``.
    """

    api_base = app.config.get("API_BASE_PREFIX", "/api").rstrip("/")

    from sessionstore.api.v1 import API_VERSION as V1
    from sessionstore.api.v1 import REGISTRY as V1_REGISTRY

    for bp, rel_prefix in V1_REGISTRY:
        prefix = "/".join(s for s in (api_base, V1, rel_prefix.strip("/")) if s)
        app.register_blueprint(bp, url_prefix="/" + prefix.lstrip("/"))


__all__ = ["init_app"]
