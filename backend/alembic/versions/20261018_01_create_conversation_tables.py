"""create conversation tables

Revision ID: 20261018_01
Revises: 
Create Date: 2026-10-18 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_01"
down_revision = None
branch_labels = None
depends_on = None


CHANNEL_TYPE = sa.Enum("public", "private", "department", name="chat_channel_type")
MEMBER_ROLE = sa.Enum("owner", "admin", "member", name="chat_member_role")
MESSAGE_TYPE = sa.Enum("text", "file", "thread_reply", "system", name="chat_message_type")


def _timestamps(*names: str) -> list[sa.Column]:
    columns = []
    for name in names:
        if name == "updated_at":
            columns.append(
                sa.Column(
                    name,
                    sa.DateTime(timezone=True),
                    server_default=sa.func.now(),
                    onupdate=sa.func.now(),
                    nullable=False,
                )
            )
        else:
            columns.append(
                sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
            )
    return columns


def _member_columns(conversation_column: str, conversation_table: str) -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            conversation_column,
            sa.Integer(),
            sa.ForeignKey(f"{conversation_table}.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", MEMBER_ROLE, nullable=False, server_default="member"),
        sa.Column("last_read_message_id", sa.Integer(), nullable=True),
        sa.Column("last_read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_muted", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps("joined_at"),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=128), nullable=True),
        sa.Column("last_name", sa.String(length=128), nullable=True),
        *_timestamps("created_at"),
        sa.UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_users_tenant", "users", ["tenant_id"])

    op.create_table(
        "chat_channels",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("channel_type", CHANNEL_TYPE, nullable=False),
        sa.Column("department", sa.String(length=128), nullable=True),
        sa.Column("project_id", sa.Integer(), nullable=True),
        sa.Column("event_id", sa.Integer(), nullable=True),
        sa.Column("is_read_only", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        *_timestamps("created_at", "updated_at"),
        sa.UniqueConstraint("tenant_id", "name", name="uq_chat_channels_tenant_name"),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_chat_channels_tenant_type", "chat_channels", ["tenant_id", "channel_type"])

    op.create_table(
        "chat_channel_members",
        *_member_columns("channel_id", "chat_channels"),
        sa.UniqueConstraint("channel_id", "user_id", name="uq_chat_channel_member"),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_chat_channel_members_user", "chat_channel_members", ["user_id"])

    op.create_table(
        "chat_groups",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=True),
        sa.Column("is_dm", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("avatar_url", sa.String(length=512), nullable=True),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        *_timestamps("created_at", "updated_at"),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_chat_groups_tenant", "chat_groups", ["tenant_id"])

    op.create_table(
        "chat_group_members",
        *_member_columns("group_id", "chat_groups"),
        sa.UniqueConstraint("group_id", "user_id", name="uq_chat_group_member"),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_chat_group_members_user", "chat_group_members", ["user_id"])

    op.create_table(
        "chat_tenant_sequences",
        sa.Column("tenant_id", sa.Integer(), primary_key=True, autoincrement=False, nullable=False),
        sa.Column("last_message_id", sa.Integer(), nullable=False, server_default="0"),
        mysql_charset="utf8mb4",
    )

    op.create_table(
        "chat_messages",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column(
            "channel_id", sa.Integer(), sa.ForeignKey("chat_channels.id", ondelete="CASCADE"), nullable=True
        ),
        sa.Column("group_id", sa.Integer(), sa.ForeignKey("chat_groups.id", ondelete="CASCADE"), nullable=True),
        sa.Column(
            "parent_message_id",
            sa.Integer(),
            sa.ForeignKey("chat_messages.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("sender_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("message_type", MESSAGE_TYPE, nullable=False, server_default="text"),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("file_url", sa.String(length=1024), nullable=True),
        sa.Column("file_name", sa.String(length=255), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("thread_reply_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_edited", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("edited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps("created_at", "updated_at"),
        sa.CheckConstraint(
            "(channel_id IS NULL) <> (group_id IS NULL)",
            name="ck_chat_messages_single_target",
        ),
        mysql_charset="utf8mb4",
        sqlite_autoincrement=True,
    )
    op.create_index("ix_chat_messages_channel_id", "chat_messages", ["channel_id", "id"])
    op.create_index("ix_chat_messages_group_id", "chat_messages", ["group_id", "id"])
    op.create_index("ix_chat_messages_parent", "chat_messages", ["parent_message_id", "id"])
    op.create_index("ix_chat_messages_tenant", "chat_messages", ["tenant_id", "id"])

    op.create_table(
        "chat_reactions",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "message_id", sa.Integer(), sa.ForeignKey("chat_messages.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("emoji", sa.String(length=32), nullable=False),
        *_timestamps("created_at"),
        sa.UniqueConstraint("message_id", "user_id", "emoji", name="uq_chat_reaction"),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_chat_reactions_message", "chat_reactions", ["message_id"])

    op.create_table(
        "chat_mentions",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "message_id", sa.Integer(), sa.ForeignKey("chat_messages.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "mentioned_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps("created_at"),
        sa.UniqueConstraint("message_id", "mentioned_user_id", name="uq_chat_mention"),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_chat_mentions_user", "chat_mentions", ["mentioned_user_id", "is_read"])


def downgrade() -> None:
    op.drop_index("ix_chat_mentions_user", table_name="chat_mentions")
    op.drop_table("chat_mentions")
    op.drop_index("ix_chat_reactions_message", table_name="chat_reactions")
    op.drop_table("chat_reactions")
    for index in (
        "ix_chat_messages_tenant",
        "ix_chat_messages_parent",
        "ix_chat_messages_group_id",
        "ix_chat_messages_channel_id",
    ):
        op.drop_index(index, table_name="chat_messages")
    op.drop_table("chat_messages")
    op.drop_table("chat_tenant_sequences")
    op.drop_index("ix_chat_group_members_user", table_name="chat_group_members")
    op.drop_table("chat_group_members")
    op.drop_index("ix_chat_groups_tenant", table_name="chat_groups")
    op.drop_table("chat_groups")
    op.drop_index("ix_chat_channel_members_user", table_name="chat_channel_members")
    op.drop_table("chat_channel_members")
    op.drop_index("ix_chat_channels_tenant_type", table_name="chat_channels")
    op.drop_table("chat_channels")
    op.drop_index("ix_users_tenant", table_name="users")
    op.drop_table("users")

    bind = op.get_bind()
    for enum in (MESSAGE_TYPE, MEMBER_ROLE, CHANNEL_TYPE):
        enum.drop(bind, checkfirst=True)
