"""
Request Models
==============
Pydantic models for the JSON bodies of the four workspace endpoints.

Field names are snake_case in Python and camelCase on the wire
(``projectId``, ``repoUrl``, ``testCommandArgs`` ...). Required strings must
be non-empty; an empty string counts as missing.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CloneRequest(_CamelModel):
    repo_url: str = Field(min_length=1)
    project_id: str = Field(min_length=1)
    branch: Optional[str] = None


class RunTestsRequest(_CamelModel):
    project_id: str = Field(min_length=1)
    test_command_args: List[str] = Field(min_length=1)    # e.g. ["--script", "res://test/run_tests.gd"]


class BuildRequest(_CamelModel):
    project_id: str = Field(min_length=1)
    export_preset: str = Field(min_length=1)     # "Linux/X11", "Windows Desktop", "Web"
    output_name: str = Field(min_length=1)       # no extension, the engine adds it
    build_dir: Optional[str] = None              # relative to the project, settings default when omitted


class CleanupRequest(_CamelModel):
    project_id: str = Field(min_length=1)
