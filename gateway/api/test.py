"""
POST /test
Runs the engine headlessly inside a cloned project with caller-supplied
arguments and returns the raw stdout/stderr.
"""
from fastapi import APIRouter, Depends

from gateway.api.dependencies import get_gateway
from gateway.models.requests import RunTestsRequest
from gateway.models.responses import CommandOutput, CommandResponse
from gateway.services.workspace_service import WorkspaceGateway

router = APIRouter()


@router.post("/test", response_model=CommandResponse)
async def run_tests(request: RunTestsRequest,
                    gateway: WorkspaceGateway = Depends(get_gateway)):
    outcome = await gateway.run_tests(
        project_id=request.project_id,
        test_args=request.test_command_args,
    )
    return CommandResponse(message=outcome.message, output=CommandOutput(**outcome.result.output()))
