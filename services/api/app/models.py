"""
SQLAlchemy ORM models.

Tables:
  users          — account + profile
  edges          — social graph (follow / favorite / friend / friend_request)
  posts          — post metadata (image bytes live in MinIO)
  post_likes     — user × post likes
  comments       — comments and one level of replies
  comment_likes  — user × comment likes
  notifications  — fan-out records addressed to a recipient
"""
import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects import mysql
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    # Naive UTC: MySQL DATETIME and SQLite both drop tzinfo on the way back.
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Microsecond precision on MySQL keeps "newest first" stable within a second.
Timestamp = DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql")


def _enum(cls):
    return Enum(
        cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
    )


class EdgeKind(str, enum.Enum):
    FOLLOW = "follow"
    FAVORITE = "favorite"
    FRIEND = "friend"
    FRIEND_REQUEST = "friend_request"


class CommentStatus(str, enum.Enum):
    ACTIVE = "active"
    HIDDEN = "hidden"
    DELETED = "deleted"


class NotificationType(str, enum.Enum):
    FRIEND_REQUEST = "friend_request"
    FRIEND_ACCEPTED = "friend_accepted"
    POST_LIKE = "post_like"
    POST_COMMENT = "post_comment"
    COMMENT_LIKE = "comment_like"
    FOLLOW = "follow"


class RelatedModel(str, enum.Enum):
    USER = "User"
    POST = "Post"
    COMMENT = "Comment"


class User(Base):
    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    nome: Mapped[str] = mapped_column(String(100), nullable=False)
    sobrenome: Mapped[str] = mapped_column(String(100), nullable=False)
    telefone: Mapped[Optional[str]] = mapped_column(String(30))
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    cep: Mapped[str] = mapped_column(String(20), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(100), nullable=False)
    avatar: Mapped[Optional[str]] = mapped_column(String(500))
    bio: Mapped[Optional[str]] = mapped_column(String(500))
    username_changed_at: Mapped[Optional[datetime]] = mapped_column(Timestamp)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        Timestamp, default=utcnow, onupdate=utcnow, nullable=False
    )


class Edge(Base):
    """
    One directed relationship between two users.

    followers/following are two views of the same follow row; a friendship
    is stored as a pair of friend rows written in the same transaction.
    """

    __tablename__ = "edges"

    source_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True
    )
    target_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True
    )
    kind: Mapped[EdgeKind] = mapped_column(_enum(EdgeKind), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("source_id <> target_id", name="ck_edges_no_self"),
        # "who points at user X?": followers, pending friend requests
        Index("idx_edges_target", "target_id", "kind"),
    )


class Post(Base):
    __tablename__ = "posts"

    post_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, default="", nullable=False)
    image: Mapped[Optional[str]] = mapped_column(String(500))
    like_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    comment_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        Timestamp, default=utcnow, onupdate=utcnow, nullable=False
    )

    author = relationship("User", lazy="joined")
    likes = relationship(
        "PostLike", lazy="selectin", order_by="PostLike.created_at", viewonly=True
    )

    __table_args__ = (
        Index("idx_posts_user", "user_id", "created_at"),
        Index("idx_posts_created", "created_at"),
    )


class PostLike(Base):
    __tablename__ = "post_likes"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.post_id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow, nullable=False)


class Comment(Base):
    __tablename__ = "comments"

    comment_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.post_id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    content: Mapped[str] = mapped_column(String(1000), nullable=False)
    parent_comment_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("comments.comment_id", ondelete="CASCADE")
    )
    status: Mapped[CommentStatus] = mapped_column(
        _enum(CommentStatus), default=CommentStatus.ACTIVE, nullable=False
    )
    like_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        Timestamp, default=utcnow, onupdate=utcnow, nullable=False
    )

    author = relationship("User", lazy="joined")
    likes = relationship(
        "CommentLike", lazy="selectin", order_by="CommentLike.created_at", viewonly=True
    )
    # Loaded explicitly with selectinload() where threads are rendered.
    replies = relationship(
        "Comment",
        lazy="raise",
        order_by="Comment.created_at",
        viewonly=True,
    )

    __table_args__ = (
        Index("idx_comments_post", "post_id", "created_at"),
        Index("idx_comments_user", "user_id", "created_at"),
        Index("idx_comments_parent", "parent_comment_id"),
    )


class CommentLike(Base):
    __tablename__ = "comment_likes"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
    comment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("comments.comment_id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow, nullable=False)


class Notification(Base):
    __tablename__ = "notifications"

    notification_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    recipient_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[NotificationType] = mapped_column(_enum(NotificationType), nullable=False)
    content: Mapped[str] = mapped_column(String(500), nullable=False)
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Triggering entity; rendered as a tagged union by the API layer.
    related_model: Mapped[Optional[RelatedModel]] = mapped_column(_enum(RelatedModel))
    related_id: Mapped[Optional[str]] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow, nullable=False)

    sender = relationship("User", foreign_keys=[sender_id], lazy="joined")

    __table_args__ = (
        Index("idx_notifications_recipient", "recipient_id", "read", "created_at"),
    )
