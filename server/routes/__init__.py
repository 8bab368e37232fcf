"""API route modules."""

from server.routes import admin_routes, file_routes, upload_routes

__all__ = ["admin_routes", "file_routes", "upload_routes"]
