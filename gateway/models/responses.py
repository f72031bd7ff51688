"""
Response Models
Pydantic models for successful and failed gateway responses.
"""
from typing import Optional

from pydantic import BaseModel


class CommandOutput(BaseModel):
    stdout: str = ""
    stderr: str = ""


class MessageResponse(BaseModel):
    message: str


class CommandResponse(BaseModel):
    message: str
    output: CommandOutput


class ErrorDetails(BaseModel):
    error: str
    stderr: str = ""
    stdout: str = ""


class ErrorResponse(BaseModel):
    error: str
    details: Optional[ErrorDetails] = None
