from datetime import datetime
from typing import Optional, Any
from pydantic import BaseModel, EmailStr, ConfigDict, Field, model_validator
from uuid import UUID

UNKNOWN_AUTHOR = "Unknown User"


def _with_related_name(cls, data: Any, relation: str, target: str, fallback: Optional[str]):
    # flatten the related user's username onto ORM rows before validation
    if isinstance(data, dict):
        return data
    values = {name: getattr(data, name) for name in cls.model_fields if hasattr(data, name)}
    related = getattr(data, relation, None)
    values[target] = related.username if related is not None else fallback
    return values


class UserCreate(BaseModel):
    email: EmailStr
    username: str = Field(min_length=3, max_length=50)
    password: str = Field(min_length=4)


class UserOut(BaseModel):
    id: UUID
    username: str
    email: EmailStr
    is_admin: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class UserSummary(BaseModel):
    id: UUID
    username: str
    email: EmailStr
    is_admin: bool = False
    model_config = ConfigDict(from_attributes=True)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class LoginRequest(BaseModel):
    username: str
    password: str


class FileOut(BaseModel):
    id: UUID
    original_name: str
    storage_name: str
    file_size: int
    mime_type: Optional[str] = None
    uploaded_by: UUID
    uploader: Optional[str] = None
    is_public: bool
    download_count: int = 0
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="before")
    @classmethod
    def _attach_uploader(cls, data: Any) -> Any:
        return _with_related_name(cls, data, "owner", "uploader", None)


class FileList(BaseModel):
    files: list[FileOut]


class UploadOut(BaseModel):
    files: list[FileOut]
    message: str
    failed: int = 0


class DownloadOut(BaseModel):
    downloadUrl: str
    fileName: str


class DeleteOut(BaseModel):
    success: bool = True
    message: Optional[str] = None


class ChatMessageCreate(BaseModel):
    message: str = ""


class ChatMessageOut(BaseModel):
    id: UUID
    user_id: UUID
    username: str = UNKNOWN_AUTHOR
    message: str
    is_ai: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="before")
    @classmethod
    def _attach_username(cls, data: Any) -> Any:
        return _with_related_name(cls, data, "author", "username", UNKNOWN_AUTHOR)


class ChatMessageEnvelope(BaseModel):
    message: ChatMessageOut


class ChatMessageList(BaseModel):
    messages: list[ChatMessageOut]


class AdminStats(BaseModel):
    users: int
    files: int
    messages: int
    storageUsed: int
    serverUptime: float


class UserList(BaseModel):
    users: list[UserOut]


class AdminToggle(BaseModel):
    isAdmin: bool


class UserEnvelope(BaseModel):
    user: UserSummary


class HealthOut(BaseModel):
    status: str
    timestamp: datetime
    uptime: float
    environment: str
