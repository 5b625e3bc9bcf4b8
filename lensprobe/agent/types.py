from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AgentModel(BaseModel):
    """Base model with camelCase serialization aliases."""
    model_config = ConfigDict(populate_by_name=True)


class LensModel(AgentModel):
    """Lens values are produced by the agent and never mutated here."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Position(LensModel):
    line: int
    character: int


class Range(LensModel):
    start: Position
    end: Position


class Command(LensModel):
    title: str = ""
    command: str | None = None
    tooltip: str | None = None
    arguments: tuple[Any, ...] | None = None

    @field_validator("title", mode="before")
    @classmethod
    def _flatten_title(cls, value: Any) -> Any:
        # Some agents send {"text": ..., "icons": [...]} instead of a plain string
        if isinstance(value, dict):
            return value.get("text", "")
        return value


class CodeLens(LensModel):
    range: Range | None = None
    command: Command | None = None


# All lenses currently shown for one document, in the order the agent sent them
Snapshot = list[CodeLens]


class DisplayCodeLensParams(AgentModel):
    uri: str
    code_lenses: list[CodeLens] = Field(default_factory=list, validation_alias="codeLenses")


class ExtensionConfiguration(AgentModel):
    server_endpoint: str = Field(serialization_alias="serverEndpoint")
    access_token: str | None = Field(default=None, serialization_alias="accessToken")
    custom_headers: dict[str, str] = Field(default_factory=dict, serialization_alias="customHeaders")
    custom_configuration: dict[str, Any] = Field(
        default_factory=dict, serialization_alias="customConfiguration"
    )


class ClientCapabilities(AgentModel):
    code_lenses: Literal["none", "enabled"] = Field(default="enabled", serialization_alias="codeLenses")
    edit: Literal["none", "enabled"] = "enabled"
    edit_workspace: Literal["none", "enabled"] = Field(default="enabled", serialization_alias="editWorkspace")
    show_document: Literal["none", "enabled"] = Field(default="enabled", serialization_alias="showDocument")
    progress_bars: Literal["none", "enabled"] = Field(default="enabled", serialization_alias="progressBars")


class ClientInfo(AgentModel):
    name: str
    version: str
    workspace_root_uri: str = Field(serialization_alias="workspaceRootUri")
    extension_configuration: ExtensionConfiguration = Field(serialization_alias="extensionConfiguration")
    capabilities: ClientCapabilities = Field(default_factory=ClientCapabilities)


class ServerInfo(AgentModel):
    name: str = ""


class AuthStatus(AgentModel):
    status: str = "unauthenticated"
    endpoint: str = ""
    username: str | None = None
    authenticated: bool | None = None

    @property
    def is_authenticated(self) -> bool:
        if self.authenticated is not None:
            return self.authenticated
        return self.status == "authenticated"


class ProtocolTextDocument(AgentModel):
    uri: str
    content: str | None = None


class ExecuteCommandParams(AgentModel):
    command: str
    arguments: list[Any] = Field(default_factory=list)


class NetworkRequest(AgentModel):
    url: str | None = None
    body: str | None = None
    error: str | None = None


class RequestErrorsResult(AgentModel):
    errors: list[NetworkRequest] = Field(default_factory=list)
