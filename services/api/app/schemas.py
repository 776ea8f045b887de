"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.
"""
from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from app.models import CommentStatus, NotificationType

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
USERNAME_PATTERN = r"^[A-Za-z0-9_.]+$"


class MessageResponse(BaseModel):
    message: str


# ──────────────────────────── Auth ────────────────────────────────────────

class RegisterRequest(BaseModel):
    nome: str = Field(..., min_length=1, max_length=100)
    sobrenome: str = Field(..., min_length=1, max_length=100)
    username: str = Field(..., min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    telefone: Optional[str] = Field(None, max_length=30)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    cep: str = Field(..., min_length=1, max_length=20)
    # bcrypt only looks at the first 72 bytes
    password: str = Field(..., min_length=6, max_length=72)

    class Config:
        str_strip_whitespace = True

    @field_validator("email")
    @classmethod
    def _lowercase_email(cls, value: str) -> str:
        return value.lower()


class LoginRequest(BaseModel):
    # Email or username
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

    class Config:
        str_strip_whitespace = True


# ──────────────────────────── Users ───────────────────────────────────────

class AuthorSummary(BaseModel):
    """Minimal user projection embedded in posts, comments and notifications."""
    user_id: str
    nome: str
    sobrenome: str
    username: str
    avatar: Optional[str] = None

    class Config:
        from_attributes = True


class UserProfile(AuthorSummary):
    bio: Optional[str] = None
    followers: list[str] = []
    following: list[str] = []
    friends: list[str] = []
    followers_count: int = 0
    following_count: int = 0
    friends_count: int = 0
    created_at: datetime


class UserPrivate(UserProfile):
    """Profile as seen by its owner."""
    email: str
    telefone: Optional[str] = None
    cep: str
    favoritos: list[str] = []
    friend_requests: list[str] = []
    username_changed_at: Optional[datetime] = None


class RegisterResponse(BaseModel):
    message: str
    user: UserPrivate


class LoginResponse(BaseModel):
    token: str
    user: UserPrivate


class ProfileUpdate(BaseModel):
    nome: Optional[str] = Field(None, min_length=1, max_length=100)
    sobrenome: Optional[str] = Field(None, min_length=1, max_length=100)
    telefone: Optional[str] = Field(None, max_length=30)
    cep: Optional[str] = Field(None, min_length=1, max_length=20)
    bio: Optional[str] = Field(None, max_length=500)

    class Config:
        str_strip_whitespace = True


class UsernameChange(BaseModel):
    username: str = Field(..., min_length=3, max_length=50, pattern=USERNAME_PATTERN)

    class Config:
        str_strip_whitespace = True


# ──────────────────────────── Posts ───────────────────────────────────────

class PostResponse(BaseModel):
    post_id: str
    user_id: str
    author: Optional[AuthorSummary] = None
    content: str
    image: Optional[str] = None     # durable MinIO URL
    likes: list[str]
    like_count: int
    comment_count: int
    created_at: datetime
    updated_at: datetime


class LikeToggleResponse(BaseModel):
    likes: list[str]
    like_count: int
    liked: bool


# ──────────────────────────── Comments ────────────────────────────────────

class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)
    parent_comment_id: Optional[str] = None

    class Config:
        str_strip_whitespace = True


class CommentUpdate(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)

    class Config:
        str_strip_whitespace = True


class CommentResponse(BaseModel):
    comment_id: str
    post_id: str
    user_id: str
    author: Optional[AuthorSummary] = None
    content: str
    parent_comment_id: Optional[str] = None
    status: CommentStatus
    likes: list[str]
    like_count: int
    created_at: datetime
    updated_at: datetime


class CommentThread(CommentResponse):
    replies: list[CommentResponse] = []


class CommentPage(BaseModel):
    comments: list[CommentThread]
    total_pages: int
    current_page: int
    total_comments: int


# ──────────────────────────── Notifications ───────────────────────────────

class RelatedUser(BaseModel):
    kind: Literal["user"] = "user"
    id: str


class RelatedPost(BaseModel):
    kind: Literal["post"] = "post"
    id: str


class RelatedComment(BaseModel):
    kind: Literal["comment"] = "comment"
    id: str


Related = Annotated[
    Union[RelatedUser, RelatedPost, RelatedComment],
    Field(discriminator="kind"),
]


class NotificationResponse(BaseModel):
    notification_id: str
    recipient_id: str
    sender: Optional[AuthorSummary] = None
    type: NotificationType
    content: str
    read: bool
    related: Optional[Related] = None
    created_at: datetime


class UnreadCount(BaseModel):
    count: int
