"""
POST /build
Exports a release build of a cloned project using one of its export presets.
"""
from fastapi import APIRouter, Depends

from gateway.api.dependencies import get_gateway
from gateway.models.requests import BuildRequest
from gateway.models.responses import CommandOutput, CommandResponse
from gateway.services.workspace_service import WorkspaceGateway

router = APIRouter()


@router.post("/build", response_model=CommandResponse)
async def build_project(request: BuildRequest,
                        gateway: WorkspaceGateway = Depends(get_gateway)):
    outcome = await gateway.build(
        project_id=request.project_id,
        export_preset=request.export_preset,
        output_name=request.output_name,
        build_dir=request.build_dir,
    )
    return CommandResponse(message=outcome.message, output=CommandOutput(**outcome.result.output()))
