"""
POST /clone
Shallow-clones a Git repository into <workspace>/<projectId>, replacing any
previous checkout of the same project.
"""
from fastapi import APIRouter, Depends

from gateway.api.dependencies import get_gateway
from gateway.models.requests import CloneRequest
from gateway.models.responses import MessageResponse
from gateway.services.workspace_service import WorkspaceGateway

router = APIRouter()


@router.post("/clone", response_model=MessageResponse)
async def clone_repository(request: CloneRequest,
                           gateway: WorkspaceGateway = Depends(get_gateway)):
    outcome = await gateway.provision(
        repo_url=request.repo_url,
        project_id=request.project_id,
        branch=request.branch,
    )
    return MessageResponse(message=outcome.message)
