from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from typing import List, Optional, Union


class ApiModel(BaseModel):
    """Request bodies accept camelCase (wire) or snake_case keys"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginRequest(ApiModel):
    username: str
    password: str


class StartSessionRequest(ApiModel):
    customer_email: str = Field(min_length=3)
    customer_name: str = Field(min_length=1)


class TransferRequest(ApiModel):
    """sessionId is the session code"""
    session_id: str
    new_agent_id: str
    reason: Optional[str] = None


class MarkReadRequest(ApiModel):
    user_id: str


class SOPCreateRequest(ApiModel):
    title: str = Field(min_length=1)
    category: str = Field(min_length=1)
    content: str
    keywords: List[str] = Field(default_factory=list)
    version: str = "1.0"
    uploaded_by: Optional[str] = None


class SOPUpdateRequest(ApiModel):
    title: Optional[str] = None
    category: Optional[str] = None
    content: Optional[str] = None
    keywords: Optional[List[str]] = None
    version: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def reject_nulls(cls, data):
        """Omit a field to keep it; null is not a valid value for any of them"""
        if isinstance(data, dict):
            nulls = [key for key, value in data.items() if value is None]
            if nulls:
                raise ValueError(f"fields cannot be null: {', '.join(nulls)}")
        return data


class SOPSearchRequest(ApiModel):
    keywords: Union[str, List[str]]

    def keyword_list(self) -> List[str]:
        if isinstance(self.keywords, str):
            return [self.keywords]
        return self.keywords


class QuickReplyCreateRequest(ApiModel):
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    category: Optional[str] = None
    created_by: Optional[str] = None


class DashboardStats(ApiModel):
    active_chats: int
    waiting_chats: int
    online_agents: int
    total_sessions: int
