"""cardwall schema: users, graph, content tree, taxonomy, notifications, reports

Revision ID: 202601150001
Revises:
Create Date: 2026-01-15 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "202601150001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str = "created_at") -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def upgrade() -> None:
    # ------------------------------------------------------------------
    # Identity & graph
    # ------------------------------------------------------------------
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_key", sa.Uuid(), nullable=False),
        sa.Column("handle", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("profile_image_url", sa.String(length=500), nullable=True),
        sa.Column("cover_image_url", sa.String(length=500), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="user"),
        sa.Column("badge", sa.String(length=10), nullable=False, server_default="none"),
        _timestamp(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("role IN ('user', 'admin')", name="ck_users_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_user_key", "users", ["user_key"], unique=True)
    op.create_index("ix_users_handle", "users", ["handle"], unique=True)
    op.create_index("ix_users_created_at", "users", ["created_at"])

    op.create_table(
        "follows",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("follower_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("following_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        _timestamp(),
        sa.UniqueConstraint("follower_id", "following_id", name="uq_follow_follower_following"),
        sa.CheckConstraint("follower_id != following_id", name="ck_follows_no_self"),
    )
    op.create_index("ix_follows_follower_id", "follows", ["follower_id"])
    op.create_index("ix_follows_following_id", "follows", ["following_id"])

    op.create_table(
        "saved_posts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("post_id", sa.Integer(), nullable=False),
        _timestamp(),
        sa.UniqueConstraint("user_id", "post_id", name="uq_saved_user_post"),
    )
    op.create_index("ix_saved_posts_user_id", "saved_posts", ["user_id"])
    op.create_index("ix_saved_posts_post_id", "saved_posts", ["post_id"])

    op.create_table(
        "badge_assignments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("badge", sa.String(length=10), nullable=False),
        sa.Column("assigned_by", sa.Integer(), nullable=True),
        _timestamp(),
    )
    op.create_index("ix_badge_assignments_user_id", "badge_assignments", ["user_id"])

    # ------------------------------------------------------------------
    # Content tree
    # ------------------------------------------------------------------
    op.create_table(
        "posts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("author", sa.String(length=100), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("content_color", sa.String(length=20), nullable=False),
        sa.Column("author_color", sa.String(length=20), nullable=False),
        sa.Column("tint_color", sa.String(length=20), nullable=False),
        sa.Column("background_image", sa.String(length=500), nullable=True),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        _timestamp(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_posts_id", "posts", ["id"])
    op.create_index("ix_posts_owner_id", "posts", ["owner_id"])
    op.create_index("ix_posts_category", "posts", ["category"])
    op.create_index("ix_posts_created_at", "posts", ["created_at"])

    op.create_table(
        "post_tags",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("posts.id"), nullable=False),
        sa.Column("tag", sa.String(length=100), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("post_id", "tag", name="uq_post_tags_post_tag"),
    )
    op.create_index("ix_post_tags_post_id", "post_tags", ["post_id"])
    op.create_index("ix_post_tags_tag", "post_tags", ["tag"])

    op.create_table(
        "comments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("posts.id"), nullable=False),
        sa.Column("author_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        _timestamp(),
    )
    op.create_index("ix_comments_id", "comments", ["id"])
    op.create_index("ix_comments_post_id", "comments", ["post_id"])
    op.create_index("ix_comments_author_id", "comments", ["author_id"])

    op.create_table(
        "replies",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("comment_id", sa.Integer(), sa.ForeignKey("comments.id"), nullable=False),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("posts.id"), nullable=False),
        sa.Column("author_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        _timestamp(),
    )
    op.create_index("ix_replies_id", "replies", ["id"])
    op.create_index("ix_replies_comment_id", "replies", ["comment_id"])
    op.create_index("ix_replies_post_id", "replies", ["post_id"])
    op.create_index("ix_replies_author_id", "replies", ["author_id"])

    op.create_table(
        "likes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("target_type", sa.String(length=10), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=False),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("posts.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        _timestamp(),
        sa.UniqueConstraint("target_type", "target_id", "user_id", name="uq_likes_target_user"),
    )
    op.create_index("ix_likes_target", "likes", ["target_type", "target_id"])
    op.create_index("ix_likes_post_id", "likes", ["post_id"])
    op.create_index("ix_likes_user_id", "likes", ["user_id"])

    # ------------------------------------------------------------------
    # Taxonomy
    # ------------------------------------------------------------------
    for table in ("categories", "tags"):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("background_image", sa.String(length=500), nullable=True),
            sa.Column("post_count", sa.Integer(), nullable=False, server_default="0"),
            _timestamp(),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.CheckConstraint("post_count >= 0", name=f"ck_{table}_post_count"),
        )
        op.create_index(f"ix_{table}_name", table, ["name"], unique=True)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("notification_type", sa.String(length=20), nullable=False),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("posts.id"), nullable=True),
        sa.Column("sender_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("context", sa.String(length=10), nullable=True),
        sa.Column("item_id", sa.Integer(), nullable=True),
        sa.Column("snippet", sa.String(length=200), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp(),
        sa.CheckConstraint(
            "notification_type = 'follow' OR post_id IS NOT NULL",
            name="ck_notifications_post_required",
        ),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_post_id", "notifications", ["post_id"])
    op.create_index("ix_notifications_sender_id", "notifications", ["sender_id"])
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "is_read"])

    # ------------------------------------------------------------------
    # Moderation
    # ------------------------------------------------------------------
    op.create_table(
        "reports",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("target_type", sa.String(length=10), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        _timestamp(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("target_type", "target_id", name="uq_reports_target"),
    )
    op.create_index("ix_reports_status", "reports", ["status"])
    op.create_index("ix_reports_created_at", "reports", ["created_at"])

    op.create_table(
        "report_reasons",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("report_id", sa.Integer(), sa.ForeignKey("reports.id"), nullable=False),
        sa.Column("reporter_id", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("extra_info", sa.Text(), nullable=True),
        _timestamp("reported_at"),
        sa.UniqueConstraint("report_id", "reporter_id", name="uq_report_reasons_reporter"),
    )
    op.create_index("ix_report_reasons_report_id", "report_reasons", ["report_id"])


def downgrade() -> None:
    for table in (
        "report_reasons",
        "reports",
        "notifications",
        "tags",
        "categories",
        "likes",
        "replies",
        "comments",
        "post_tags",
        "posts",
        "badge_assignments",
        "saved_posts",
        "follows",
        "users",
    ):
        op.drop_table(table)
