"""
HTTP request bodies.

Content bodies (posts, projects, groups, reports, ...) carry arbitrary
client fields that are stored as-is, so those models allow extra keys.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def client_fields(self) -> dict[str, Any]:
        """Fields the client actually sent, camelCase keys, extras included."""
        return self.model_dump(by_alias=True, exclude_unset=True)


class ContentRequest(ApiModel):
    """Free-form document submitted by the client (post, project, group, report)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str | None = None


class RegisterUserRequest(ApiModel):
    email: str = Field(..., min_length=1)
    name: str | None = None
    username: str | None = None
    plan: str | None = None
    avatar: str | None = None
    projects_count: int | None = None
    created_at: str | None = None


class VoteRequest(ApiModel):
    user_id: str = Field(..., min_length=1)


class GroupSettingsRequest(ApiModel):
    settings: dict[str, Any] = Field(default_factory=dict)
    requester_id: str | None = None


class AdminKeyRequest(ApiModel):
    key: str | None = None


class BanRequest(AdminKeyRequest):
    # Checked after the key so a bad key is always a 403
    email: str | None = None


class PaymentIntentRequest(ApiModel):
    plan: str | None = None


class GenerateBoostRequest(ApiModel):
    prompt: str = Field(..., min_length=1)


class IaBoostRequest(ApiModel):
    description: str | None = None
    prompt: str | None = None

    def content(self) -> str:
        return self.description or self.prompt or "Analyse"


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatPromoRequest(ApiModel):
    messages: list[ChatTurn] = Field(..., min_length=1)
    lang: str = "fr"
