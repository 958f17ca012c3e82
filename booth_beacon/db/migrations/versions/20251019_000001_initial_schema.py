"""Initial schema: booths and crawl_runs.

Revision ID: 0001
Revises:
Create Date: 2025-10-19

Creates the canonical booth table (with a unique normalized_key index and
JSON provenance columns) and the per-source crawl run table used for drop
detection.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "booths",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("normalized_key", sa.String(512), nullable=False),
        sa.Column("slug", sa.String(60), default=""),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.Text(), default=""),
        sa.Column("city", sa.String(255), nullable=False),
        sa.Column("state", sa.String(100), default=""),
        sa.Column("country", sa.String(100), default="Unknown"),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("description", sa.Text(), default=""),
        sa.Column("status", sa.String(20), default="unknown"),
        sa.Column("booth_type", sa.String(20), default="analog"),
        sa.Column("source_names_json", sa.Text(), default="[]"),
        sa.Column("source_urls_json", sa.Text(), default="[]"),
        sa.Column("geocode_confidence", sa.String(10), nullable=True),
        sa.Column("geocode_provider", sa.String(50), nullable=True),
        sa.Column("geocoded_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_booths_normalized_key", "booths", ["normalized_key"], unique=True)
    op.create_index("ix_booths_slug", "booths", ["slug"])
    op.create_index("ix_booths_city", "booths", ["city"])
    op.create_index("ix_booths_country", "booths", ["country"])
    op.create_index("ix_booths_status", "booths", ["status"])

    op.create_table(
        "crawl_runs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("source_name", sa.String(255), nullable=False),
        sa.Column("source_url", sa.String(1000), default=""),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("extraction_method", sa.String(20), default="none"),
        sa.Column("total_candidates", sa.Integer(), default=0),
        sa.Column("inserted", sa.Integer(), default=0),
        sa.Column("merged", sa.Integer(), default=0),
        sa.Column("changed", sa.Integer(), default=0),
        sa.Column("rejected", sa.Integer(), default=0),
        sa.Column("skipped", sa.Integer(), default=0),
        sa.Column("errored", sa.Integer(), default=0),
        sa.Column("elapsed_seconds", sa.Float(), default=0.0),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_crawl_runs_source_name", "crawl_runs", ["source_name"])
    op.create_index("ix_crawl_runs_started_at", "crawl_runs", ["started_at"])


def downgrade() -> None:
    op.drop_index("ix_crawl_runs_started_at", table_name="crawl_runs")
    op.drop_index("ix_crawl_runs_source_name", table_name="crawl_runs")
    op.drop_table("crawl_runs")

    op.drop_index("ix_booths_status", table_name="booths")
    op.drop_index("ix_booths_country", table_name="booths")
    op.drop_index("ix_booths_city", table_name="booths")
    op.drop_index("ix_booths_slug", table_name="booths")
    op.drop_index("ix_booths_normalized_key", table_name="booths")
    op.drop_table("booths")
