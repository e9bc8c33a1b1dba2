"""HTTP API layer for the Capstone Approvals service."""

from capstone_approvals.api.http import create_http_app

__all__ = ["create_http_app"]
