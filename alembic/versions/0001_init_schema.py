"""Initial schema"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_init_schema"
down_revision = None
branch_labels = None
depends_on = None

_CATALOG_TABLES = (
    "industries",
    "categories",
    "product_types",
    "product_poses",
    "product_themes",
    "product_backgrounds",
    "ai_faces",
)


def _catalog_columns(uuid) -> list[sa.Column]:
    return [
        sa.Column("id", uuid, primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("image_path", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto";')
    op.execute("CREATE TYPE generation_status AS ENUM ('success','failed');")

    uuid = postgresql.UUID(as_uuid=True)
    generation_status_enum = postgresql.ENUM(name="generation_status", create_type=False)

    op.create_table("industries", *_catalog_columns(uuid))
    op.create_table(
        "categories",
        *_catalog_columns(uuid),
        sa.Column("industry_id", uuid, sa.ForeignKey("industries.id", ondelete="SET NULL"), nullable=True),
    )
    op.create_table(
        "product_types",
        *_catalog_columns(uuid),
        sa.Column("category_id", uuid, sa.ForeignKey("categories.id", ondelete="SET NULL"), nullable=True),
    )
    op.create_table("product_poses", *_catalog_columns(uuid))
    op.create_table("product_themes", *_catalog_columns(uuid))
    op.create_table("product_backgrounds", *_catalog_columns(uuid))
    op.create_table("ai_faces", *_catalog_columns(uuid))

    op.create_table(
        "generated_images",
        sa.Column("id", uuid, primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", uuid, nullable=True),
        sa.Column("industry_id", sa.Text(), nullable=False),
        sa.Column("category_id", sa.Text(), nullable=False),
        sa.Column("product_type_id", sa.Text(), nullable=False),
        sa.Column("product_pose_id", sa.Text(), nullable=False),
        sa.Column("product_theme_id", sa.Text(), nullable=False),
        sa.Column("product_background_id", sa.Text(), nullable=False),
        sa.Column("ai_face_id", sa.Text(), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("image_path", sa.Text(), nullable=True),
        sa.Column(
            "generation_status",
            generation_status_enum,
            nullable=False,
            server_default=sa.text("'success'"),
        ),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("generation_time_ms", sa.Integer(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_generated_images_created_at", "generated_images", ["created_at"])
    op.create_index("idx_generated_images_generation_status", "generated_images", ["generation_status"])
    op.create_index("idx_generated_images_industry_id", "generated_images", ["industry_id"])
    op.create_index("idx_generated_images_product_type_id", "generated_images", ["product_type_id"])
    op.create_index("idx_generated_images_expires_at", "generated_images", ["expires_at"])


def downgrade() -> None:
    op.drop_index("idx_generated_images_expires_at", table_name="generated_images")
    op.drop_index("idx_generated_images_product_type_id", table_name="generated_images")
    op.drop_index("idx_generated_images_industry_id", table_name="generated_images")
    op.drop_index("idx_generated_images_generation_status", table_name="generated_images")
    op.drop_index("idx_generated_images_created_at", table_name="generated_images")
    op.drop_table("generated_images")
    for table in reversed(_CATALOG_TABLES):
        op.drop_table(table)
    op.execute("DROP TYPE IF EXISTS generation_status;")
