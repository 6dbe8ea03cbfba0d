from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import relationship

from .db import Base


ROLES = ("user", "admin")
BADGES = ("blue", "green", "gold", "red", "none")
LIKE_TARGET_TYPES = ("post", "comment", "reply")
NOTIFICATION_TYPES = ("follow", "like", "comment", "reply", "mention")
REPORT_TARGET_TYPES = ("user", "post", "comment", "reply")
REPORT_STATUSES = ("pending", "reviewed", "dismissed")
SNIPPET_MAX_LENGTH = 200


# ============================================================================
# IDENTITY & GRAPH
# ============================================================================


class User(Base):
    """User account with profile fields. Credentials live with the auth collaborator."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_key = Column(
        Uuid(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4, index=True
    )  # Carried in access tokens
    handle = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    bio = Column(Text, nullable=True)
    profile_image_url = Column(String(500), nullable=True)
    cover_image_url = Column(String(500), nullable=True)

    role = Column(String(20), nullable=False, default="user")  # user, admin
    badge = Column(String(10), nullable=False, default="none")  # blue, green, gold, red, none

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    # Relationships
    posts = relationship(
        "Post", back_populates="owner", foreign_keys="Post.owner_id", order_by="Post.id"
    )

    __table_args__ = (
        CheckConstraint("role IN ('user', 'admin')", name="ck_users_role"),
    )


class Follow(Base):
    """
    Follow edge. One row is both sides of the relationship:
    the follower's `following` entry and the followee's `followers` entry.
    """

    __tablename__ = "follows"

    id = Column(Integer, primary_key=True, autoincrement=True)
    follower_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    following_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    follower = relationship("User", foreign_keys=[follower_id])
    following = relationship("User", foreign_keys=[following_id])

    __table_args__ = (
        UniqueConstraint(
            "follower_id", "following_id", name="uq_follow_follower_following"
        ),
        CheckConstraint("follower_id != following_id", name="ck_follows_no_self"),
    )


class SavedPost(Base):
    """Post bookmarked by a user. Post ids are weak references (no foreign key)."""

    __tablename__ = "saved_posts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    post_id = Column(Integer, nullable=False, index=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "post_id", name="uq_saved_user_post"),
    )


class BadgeAssignment(Base):
    """Audit trail of badge changes made by admins."""

    __tablename__ = "badge_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    badge = Column(String(10), nullable=False)
    assigned_by = Column(Integer, nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ============================================================================
# CONTENT TREE
# ============================================================================


class Post(Base):
    """Image-backed text card."""

    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    title = Column(String(200), nullable=True)
    content = Column(Text, nullable=False)
    author = Column(String(100), nullable=False)  # Attribution printed on the card
    category = Column(String(100), nullable=False, index=True)

    content_color = Column(String(20), nullable=False)
    author_color = Column(String(20), nullable=False)
    tint_color = Column(String(20), nullable=False)

    background_image = Column(String(500), nullable=True)  # Opaque image-store URL
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    # Relationships
    owner = relationship("User", back_populates="posts", foreign_keys=[owner_id])
    tag_rows = relationship(
        "PostTag", order_by="PostTag.position", cascade="all, delete-orphan"
    )

    @property
    def tags(self) -> list[str]:
        return [row.tag for row in self.tag_rows]


class PostTag(Base):
    """Tag membership of a post, in the order the tags were given."""

    __tablename__ = "post_tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    tag = Column(String(100), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    __table_args__ = (UniqueConstraint("post_id", "tag", name="uq_post_tags_post_tag"),)


class Comment(Base):
    """Top-level comment on a post."""

    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    body = Column(Text, nullable=False)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    author = relationship("User", foreign_keys=[author_id])
    replies = relationship("Reply", back_populates="comment", order_by="Reply.id")


class Reply(Base):
    """Reply to a comment. Replies do not nest further."""

    __tablename__ = "replies"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    comment_id = Column(Integer, ForeignKey("comments.id"), nullable=False, index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    body = Column(Text, nullable=False)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    author = relationship("User", foreign_keys=[author_id])
    comment = relationship("Comment", back_populates="replies")


class Like(Base):
    """Membership of a user in the like set of a post, comment or reply."""

    __tablename__ = "likes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    target_type = Column(String(10), nullable=False)  # post, comment, reply
    target_id = Column(Integer, nullable=False)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "target_type", "target_id", "user_id", name="uq_likes_target_user"
        ),
        Index("ix_likes_target", target_type, target_id),
    )


# ============================================================================
# TAXONOMY
# ============================================================================


class Category(Base):
    """Category with a cached count of the live posts filed under it."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    background_image = Column(String(500), nullable=True)
    post_count = Column(Integer, nullable=False, default=0, server_default="0")

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    __table_args__ = (
        CheckConstraint("post_count >= 0", name="ck_categories_post_count"),
    )


class Tag(Base):
    """Tag with a cached count of the live posts carrying it."""

    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    background_image = Column(String(500), nullable=True)
    post_count = Column(Integer, nullable=False, default=0, server_default="0")

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    __table_args__ = (CheckConstraint("post_count >= 0", name="ck_tags_post_count"),)


# ============================================================================
# NOTIFICATIONS
# ============================================================================


class Notification(Base):
    """
    Inbox entry of the recipient (`user_id`).

    The payload columns used depend on `notification_type`:
    like -> context, item_id (comment/reply likes), snippet;
    comment/reply -> item_id (the created comment/reply), snippet;
    mention -> snippet; follow -> nothing beyond the sender.
    """

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    notification_type = Column(String(20), nullable=False)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=True, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    context = Column(String(10), nullable=True)  # post, comment, reply
    item_id = Column(Integer, nullable=True)
    snippet = Column(String(SNIPPET_MAX_LENGTH), nullable=True)

    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    sender = relationship("User", foreign_keys=[sender_id])

    __table_args__ = (
        CheckConstraint(
            "notification_type = 'follow' OR post_id IS NOT NULL",
            name="ck_notifications_post_required",
        ),
        Index("ix_notifications_user_read", user_id, is_read),
    )


# ============================================================================
# MODERATION
# ============================================================================


class Report(Base):
    """Aggregated abuse report, one per (target_type, target_id)."""

    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    target_type = Column(String(10), nullable=False)  # user, post, comment, reply
    target_id = Column(Integer, nullable=False)
    count = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="pending", index=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    reasons = relationship("ReportReason", order_by="ReportReason.id")

    __table_args__ = (
        UniqueConstraint("target_type", "target_id", name="uq_reports_target"),
    )


class ReportReason(Base):
    """One reporter's reason within a report. Kept when the reporter is deleted."""

    __tablename__ = "report_reasons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    report_id = Column(Integer, ForeignKey("reports.id"), nullable=False, index=True)
    reporter_id = Column(Integer, nullable=False)
    reason = Column(Text, nullable=False)
    extra_info = Column(Text, nullable=True)
    reported_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("report_id", "reporter_id", name="uq_report_reasons_reporter"),
    )
