"""Arcade API wire types, validated at the HTTP boundary."""

from typing import Any

from pydantic import BaseModel, Field


class ToolAuthorization(BaseModel):
    id: str = ""
    provider_id: str = ""
    provider_type: str = ""
    status: str = ""

    model_config = {"extra": "allow"}


class ToolRequirements(BaseModel):
    met: bool = False
    authorization: ToolAuthorization | None = None

    model_config = {"extra": "allow"}


class ToolInput(BaseModel):
    parameters: list[dict[str, Any]] = Field(default_factory=list)


class ArcadeTool(BaseModel):
    """One entry of the Arcade tool catalog."""

    fully_qualified_name: str = ""
    qualified_name: str = ""
    name: str
    description: str = ""
    input: ToolInput = Field(default_factory=ToolInput)
    requirements: ToolRequirements = Field(default_factory=ToolRequirements)

    model_config = {"extra": "allow"}

    @property
    def is_authorized(self) -> bool:
        auth = self.requirements.authorization
        return auth is not None and auth.status == "active"


class ToolsResponse(BaseModel):
    """GET /v1/tools"""

    items: list[ArcadeTool] = Field(default_factory=list)
    limit: int = 0
    offset: int = 0
    page_count: int = 0
    total_count: int = 0


class ExecuteToolRequest(BaseModel):
    tool_name: str
    input: dict[str, Any] = Field(default_factory=dict)
    user_id: str


class ExecuteToolOutput(BaseModel):
    value: Any = None
    error: Any = None


class ExecuteToolResponse(BaseModel):
    """POST /v1/tools/execute"""

    id: str = ""
    execution_id: str = ""
    execution_type: str = ""
    finished_at: str = ""
    duration: float = 0.0
    status: str = ""
    output: ExecuteToolOutput = Field(default_factory=ExecuteToolOutput)
    success: bool = False
    error: str = ""

    model_config = {"extra": "allow"}


class AuthorizeToolRequest(BaseModel):
    tool_name: str
    user_id: str


class AuthorizationResponse(BaseModel):
    """POST /v1/tools/authorize"""

    authorization_id: str = ""
    status: str = ""  # pending, completed, failed
    authorization_url: str = ""
    error: str = ""

    model_config = {"extra": "allow"}


class AuthStatusResponse(BaseModel):
    """GET /v1/auth/status"""

    authorization_id: str = ""
    status: str = ""
    error: str = ""

    model_config = {"extra": "allow"}
