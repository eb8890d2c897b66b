"""
Wire — HTTP surface.

    from tillpoint.wire import create_app

    app = create_app(service, catalog, settings)

Request models turn JSON into drafts and patches (`to_domain()`); response
models render domain records (`from_domain()`).
"""

from tillpoint.wire._app import status_for, router, create_app, app_from_settings
from tillpoint.wire import _codecs as codecs

__all__ = (
    "status_for",
    "router",
    "create_app",
    "app_from_settings",
    "codecs",
)
