"""
POST /cleanup
Removes a cloned project directory.
"""
from fastapi import APIRouter, Depends

from gateway.api.dependencies import get_gateway
from gateway.models.requests import CleanupRequest
from gateway.models.responses import MessageResponse
from gateway.services.workspace_service import WorkspaceGateway

router = APIRouter()


@router.post("/cleanup", response_model=MessageResponse)
async def cleanup_project(request: CleanupRequest,
                          gateway: WorkspaceGateway = Depends(get_gateway)):
    outcome = await gateway.reclaim(project_id=request.project_id)
    return MessageResponse(message=outcome.message)
