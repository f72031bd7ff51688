"""
Shared FastAPI dependencies.
"""
from fastapi import Request

from gateway.services.workspace_service import WorkspaceGateway


def get_gateway(request: Request) -> WorkspaceGateway:
    """The WorkspaceGateway built for this application instance."""
    return request.app.state.gateway
