from __future__ import annotations

from datetime import datetime
from typing import Annotated, Generic, Literal, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# BASE SCHEMAS
# ============================================================================


T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """Generic paginated response."""

    items: list[T]
    next_cursor: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok"] = "ok"
    uptime_s: float | None = None


# ============================================================================
# USER SCHEMAS
# ============================================================================


class UserSummary(BaseModel):
    """Author/sender identity resolved for display."""

    id: int
    handle: str
    name: str | None = None
    profile_image_url: str | None = None
    badge: Literal["blue", "green", "gold", "red", "none"] = "none"

    model_config = ConfigDict(from_attributes=True)


class UserProfile(UserSummary):
    """Public profile with graph counts."""

    bio: str | None = None
    cover_image_url: str | None = None
    role: Literal["user", "admin"] = "user"
    follower_count: int = 0
    following_count: int = 0
    post_ids: list[int] = []
    created_at: datetime


class FollowState(BaseModel):
    """Follow edge result, with the target's follower set after the change."""

    following: bool
    followers: list[int]


class SaveResult(BaseModel):
    """Outcome of a save/unsave request. Repeats are reported, not rejected."""

    saved: bool
    changed: bool
    message: str


class SavedList(BaseModel):
    post_ids: list[int]


class ProfileUpdate(BaseModel):
    """Editable profile fields. Omitted fields keep their value."""

    name: str | None = Field(None, max_length=100)
    bio: str | None = Field(None, max_length=1000)


class BadgeAssignRequest(BaseModel):
    badge: Literal["blue", "green", "gold", "red", "none"]


# ============================================================================
# POST SCHEMAS
# ============================================================================


class Post(BaseModel):
    """Image-backed text card."""

    id: int
    owner_id: int
    title: str | None = None
    content: str
    author: str
    category: str
    tags: list[str]
    content_color: str
    author_color: str
    tint_color: str
    background_image: str | None = None
    width: int | None = None
    height: int | None = None
    created_at: datetime
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class LikeState(BaseModel):
    """Like set of a post, comment or reply."""

    likes: list[int]
    count: int


class Reply(BaseModel):
    id: int
    comment_id: int
    author: UserSummary
    body: str
    likes: list[int] = []
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Comment(BaseModel):
    id: int
    post_id: int
    author: UserSummary
    body: str
    likes: list[int] = []
    replies: list[Reply] = []
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CommentCreate(BaseModel):
    """Create comment or reply request. Blank text is rejected by the service."""

    body: str = Field(..., max_length=2000)


class PostDetail(Post):
    """Post with owner, likes and the full comment tree."""

    owner: UserSummary
    likes: list[int]
    comments: list[Comment]


# ============================================================================
# TAXONOMY SCHEMAS
# ============================================================================


class TaxonomyEntity(BaseModel):
    """Category or tag."""

    id: int
    name: str
    description: str | None = None
    background_image: str | None = None
    post_count: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CounterDrift(BaseModel):
    kind: Literal["category", "tag"]
    name: str
    stored: int
    actual: int


class ReconcileResult(BaseModel):
    """Counters corrected by a reconciliation pass."""

    corrected: list[CounterDrift]


# ============================================================================
# NOTIFICATION SCHEMAS
# ============================================================================


class LikeData(BaseModel):
    type: Literal["like"] = "like"
    context: Literal["post", "comment", "reply"]
    item_id: int | None = None
    snippet: str | None = None


class CommentData(BaseModel):
    type: Literal["comment"] = "comment"
    item_id: int | None = None
    snippet: str | None = None


class ReplyData(BaseModel):
    type: Literal["reply"] = "reply"
    item_id: int | None = None
    snippet: str | None = None


class MentionData(BaseModel):
    type: Literal["mention"] = "mention"
    snippet: str | None = None


class FollowData(BaseModel):
    type: Literal["follow"] = "follow"


NotificationData = Annotated[
    Union[LikeData, CommentData, ReplyData, MentionData, FollowData],
    Field(discriminator="type"),
]


class Notification(BaseModel):
    """Inbox entry with its type-specific payload."""

    id: int
    notification_type: Literal["follow", "like", "comment", "reply", "mention"]
    post_id: int | None = None
    sender: UserSummary | None = None
    data: NotificationData
    is_read: bool
    created_at: datetime


class NotificationUnreadCount(BaseModel):
    unread_count: int


class MarkReadRequest(BaseModel):
    notification_ids: list[int] = Field(..., max_length=200)


class MarkReadResponse(BaseModel):
    updated: int


# ============================================================================
# REPORT SCHEMAS
# ============================================================================


class ReportReason(BaseModel):
    reporter_id: int
    reason: str
    extra_info: str | None = None
    reported_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Report(BaseModel):
    """Aggregated report on one target."""

    id: int
    target_type: Literal["user", "post", "comment", "reply"]
    target_id: int
    reasons: list[ReportReason]
    count: int
    status: Literal["pending", "reviewed", "dismissed"]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReportCreate(BaseModel):
    target_type: Literal["user", "post", "comment", "reply"]
    target_id: int
    reason: str = Field(..., max_length=500)
    extra_info: str | None = Field(None, max_length=2000)


class ReportUpdate(BaseModel):
    """Update report status (admin only)."""

    status: Literal["pending", "reviewed", "dismissed"]
