"""Data models for the Family Reunion Registry."""
import secrets
import time
from datetime import datetime, timezone
from typing import Collection, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from shared.sanitize import (
    MAX_BRANCH,
    MAX_CAPTION,
    MAX_CITY,
    MAX_CONNECTED_THROUGH,
    MAX_EMAIL,
    MAX_NAME,
    MAX_PHONE,
    MAX_RELATIONSHIP,
    MAX_UPLOADER,
    sanitize_string,
    validate_email,
)


TEXT_LIMITS = {
    "name": MAX_NAME,
    "email": MAX_EMAIL,
    "phone": MAX_PHONE,
    "city": MAX_CITY,
    "relationship_type": MAX_RELATIONSHIP,
    "connected_through": MAX_CONNECTED_THROUGH,
    "family_branch": MAX_BRANCH,
}
REQUIRED_TEXT = ("name", "email", "phone", "relationship_type", "connected_through", "family_branch")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_member_id(taken: Collection[str]) -> str:
    """Millisecond timestamp token, bumped until it is unused."""
    candidate = int(time.time() * 1000)
    while str(candidate) in taken:
        candidate += 1
    return str(candidate)


def new_photo_id() -> str:
    return f"{int(time.time() * 1000)}-{secrets.randbelow(10 ** 9)}"


class CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire and on disk."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class FamilyMember(CamelModel):
    """A registered reunion attendee."""
    id: str
    name: str
    email: str
    phone: str
    city: str = ""
    relationship_type: str
    connected_through: str = ""
    generation: int = 0
    family_branch: str = ""
    photo: Optional[str] = None
    attendees: int = 1

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None


class GalleryPhoto(CamelModel):
    """A photo in the shared gallery."""
    id: str = Field(default_factory=new_photo_id)
    url: str
    caption: str = ""
    uploaded_by: str = "Anonymous"
    created_at: datetime = Field(default_factory=utcnow)


class _MemberTextRules(CamelModel):
    """Sanitize every free-text field before it is validated."""

    @field_validator(*TEXT_LIMITS, mode="before", check_fields=False)
    @classmethod
    def _sanitize(cls, value, info):
        if value is None:
            return None
        return sanitize_string(value, TEXT_LIMITS[info.field_name])

    @field_validator(*REQUIRED_TEXT, check_fields=False)
    @classmethod
    def _not_blank(cls, value):
        if value is not None and not value:
            raise ValueError("is required")
        return value

    @field_validator("email", check_fields=False)
    @classmethod
    def _valid_email(cls, value):
        if value is not None and not validate_email(value):
            raise ValueError("Invalid email address")
        return value


class RegistrationForm(_MemberTextRules):
    """Registration submission, validated before a FamilyMember is built."""
    name: str
    email: str
    phone: str
    city: str = ""
    relationship_type: str
    connected_through: str
    generation: int = Field(ge=0)
    family_branch: str
    attendees: int = Field(default=1, ge=1)


class MemberUpdateForm(_MemberTextRules):
    """Partial edit of an existing member; unset fields stay untouched."""
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    relationship_type: Optional[str] = None
    connected_through: Optional[str] = None
    generation: Optional[int] = Field(default=None, ge=0)
    family_branch: Optional[str] = None
    attendees: Optional[int] = Field(default=None, ge=1)


class GalleryUploadMeta(CamelModel):
    caption: str = ""
    uploaded_by: str = "Anonymous"

    @field_validator("caption", mode="before")
    @classmethod
    def _caption(cls, value):
        return sanitize_string(value, MAX_CAPTION)

    @field_validator("uploaded_by", mode="before")
    @classmethod
    def _uploader(cls, value):
        return sanitize_string(value, MAX_UPLOADER) or "Anonymous"


class AdminVerifyRequest(BaseModel):
    password: str = ""


class FamilyStats(CamelModel):
    total_members: int = 0
    total_attendees: int = 0
    by_generation: Dict[int, int] = Field(default_factory=dict)
    by_branch: Dict[str, int] = Field(default_factory=dict)


class TreeNode(CamelModel):
    id: str
    name: str
    photo: Optional[str] = None
    generation: int
    relationship_type: str
    connected_through: str
    family_branch: str
    attendees: int


class TreeLink(BaseModel):
    source: str
    target: str


class FamilyTree(CamelModel):
    nodes: List[TreeNode] = Field(default_factory=list)
    links: List[TreeLink] = Field(default_factory=list)


def describe_validation_error(exc: ValidationError) -> str:
    """Flatten a pydantic error into one user-facing sentence."""
    parts = []
    for err in exc.errors():
        field = err["loc"][0] if err["loc"] else "request"
        message = err["msg"].removeprefix("Value error, ")
        parts.append(f"{field}: {message}")
    return "; ".join(parts)
