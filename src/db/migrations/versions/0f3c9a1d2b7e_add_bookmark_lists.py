"""
Add bookmarks, tags, bookmark lists and list membership tables.

Revision ID: 0f3c9a1d2b7e
Revises:
Create Date: 2026-10-12 09:30:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0f3c9a1d2b7e"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "bookmarks",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("favourited", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_bookmarks_deleted_at", "bookmarks", ["deleted_at"])
    op.create_index("ix_bookmarks_archived_at", "bookmarks", ["archived_at"])
    op.create_index("ix_bookmarks_updated_at", "bookmarks", ["updated_at"])

    op.create_table(
        "tags",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "bookmark_tags",
        sa.Column("bookmark_id", sa.Uuid(), nullable=False),
        sa.Column("tag_id", sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(["bookmark_id"], ["bookmarks.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["tag_id"], ["tags.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("bookmark_id", "tag_id"),
    )
    op.create_index("ix_bookmark_tags_tag_id", "bookmark_tags", ["tag_id"])

    op.create_table(
        "bookmark_lists",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("icon", sa.String(length=100), nullable=False),
        sa.Column("type", sa.String(length=10), nullable=False, server_default="manual"),
        sa.Column("query", sa.Text(), nullable=True),
        sa.Column("parent_id", sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["parent_id"], ["bookmark_lists.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_bookmark_lists_parent_id", "bookmark_lists", ["parent_id"])
    op.create_index("ix_bookmark_lists_updated_at", "bookmark_lists", ["updated_at"])

    op.create_table(
        "bookmarks_in_lists",
        sa.Column("list_id", sa.Uuid(), nullable=False),
        sa.Column("bookmark_id", sa.Uuid(), nullable=False),
        sa.Column(
            "added_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["list_id"], ["bookmark_lists.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["bookmark_id"], ["bookmarks.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("list_id", "bookmark_id", name="pk_bookmarks_in_lists"),
    )
    op.create_index(
        "ix_bookmarks_in_lists_bookmark_id", "bookmarks_in_lists", ["bookmark_id"],
    )

    hierarchy_state = op.create_table(
        "list_hierarchy_state",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    # Seed the single version row used for hierarchy compare-and-swap
    op.bulk_insert(hierarchy_state, [{"id": 1, "version": 0}])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("list_hierarchy_state")
    op.drop_index("ix_bookmarks_in_lists_bookmark_id", table_name="bookmarks_in_lists")
    op.drop_table("bookmarks_in_lists")
    op.drop_index("ix_bookmark_lists_updated_at", table_name="bookmark_lists")
    op.drop_index("ix_bookmark_lists_parent_id", table_name="bookmark_lists")
    op.drop_table("bookmark_lists")
    op.drop_index("ix_bookmark_tags_tag_id", table_name="bookmark_tags")
    op.drop_table("bookmark_tags")
    op.drop_table("tags")
    op.drop_index("ix_bookmarks_updated_at", table_name="bookmarks")
    op.drop_index("ix_bookmarks_archived_at", table_name="bookmarks")
    op.drop_index("ix_bookmarks_deleted_at", table_name="bookmarks")
    op.drop_table("bookmarks")
