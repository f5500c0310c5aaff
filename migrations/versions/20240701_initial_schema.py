"""create users, tours, start dates, guides and reviews"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "initial_20240701"
down_revision = None
branch_labels = None
depends_on = None


USER_ROLES = ("user", "guide", "lead-guide", "admin")
TOUR_DIFFICULTIES = ("easy", "medium", "difficult")


def upgrade():
    user_role_enum = sa.Enum(*USER_ROLES, name="user_role")
    tour_difficulty_enum = sa.Enum(*TOUR_DIFFICULTIES, name="tour_difficulty")

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("photo", sa.String(length=255), nullable=False),
        sa.Column("role", user_role_enum, nullable=False, server_default="user"),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("password_changed_at", sa.DateTime(), nullable=True),
        sa.Column("password_reset_token", sa.String(length=64), nullable=True),
        sa.Column("password_reset_expires", sa.DateTime(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_users_password_reset_token", "users", ["password_reset_token"])

    op.create_table(
        "tours",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=40), nullable=False, unique=True),
        sa.Column("slug", sa.String(length=80), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("max_group_size", sa.Integer(), nullable=False),
        sa.Column("difficulty", tour_difficulty_enum, nullable=False),
        sa.Column("ratings_average", sa.Float(), nullable=False, server_default="4.5"),
        sa.Column("ratings_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("price_discount", sa.Float(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_cover", sa.String(length=255), nullable=False),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("secret_tour", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("start_location", sa.JSON(), nullable=True),
        sa.Column("locations", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.create_index("ix_tours_slug", "tours", ["slug"])
    op.create_index("ix_tours_price", "tours", ["price"])

    op.create_table(
        "tour_start_dates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tour_id", sa.Integer(), sa.ForeignKey("tours.id", ondelete="CASCADE"), nullable=False),
        sa.Column("starts_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_tour_start_dates_tour_id", "tour_start_dates", ["tour_id"])
    op.create_index("ix_tour_start_dates_starts_at", "tour_start_dates", ["starts_at"])

    op.create_table(
        "tour_guides",
        sa.Column("tour_id", sa.Integer(), sa.ForeignKey("tours.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    )

    op.create_table(
        "reviews",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("review", sa.Text(), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("tour_id", sa.Integer(), sa.ForeignKey("tours.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.UniqueConstraint("tour_id", "user_id", name="uq_reviews_tour_user"),
    )
    op.create_index("ix_reviews_tour_id", "reviews", ["tour_id"])
    op.create_index("ix_reviews_user_id", "reviews", ["user_id"])


def downgrade():
    op.drop_index("ix_reviews_user_id", table_name="reviews")
    op.drop_index("ix_reviews_tour_id", table_name="reviews")
    op.drop_table("reviews")
    op.drop_table("tour_guides")
    op.drop_index("ix_tour_start_dates_starts_at", table_name="tour_start_dates")
    op.drop_index("ix_tour_start_dates_tour_id", table_name="tour_start_dates")
    op.drop_table("tour_start_dates")
    op.drop_index("ix_tours_price", table_name="tours")
    op.drop_index("ix_tours_slug", table_name="tours")
    op.drop_table("tours")
    op.drop_index("ix_users_password_reset_token", table_name="users")
    op.drop_table("users")

    bind = op.get_bind()
    sa.Enum(name="tour_difficulty").drop(bind, checkfirst=True)
    sa.Enum(name="user_role").drop(bind, checkfirst=True)
