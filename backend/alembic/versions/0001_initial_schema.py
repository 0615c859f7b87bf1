from alembic import op
import sqlalchemy as sa


revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "assets",
        sa.Column("id", sa.String(20), primary_key=True),
        sa.Column("code", sa.String(20), nullable=False),
        sa.Column("type", sa.String(10), nullable=False),
        sa.Column("format", sa.String(50), nullable=False),
        sa.Column("state", sa.String(10), nullable=False, server_default="VACIO"),
        sa.Column("location", sa.String(20), nullable=False, server_default="EN_PLANTA"),
        sa.Column("last_movement_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("variety", sa.String(100), nullable=True),
        sa.Column("valve_type", sa.String(50), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.create_index("ix_assets_code", "assets", ["code"], unique=True)
    op.create_index("ix_assets_type", "assets", ["type"])
    op.create_index("ix_assets_location", "assets", ["location"])

    op.create_table(
        "customers",
        sa.Column("id", sa.String(20), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("contact", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(255), nullable=True),
        sa.Column("type", sa.String(20), nullable=False, server_default="BAR"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_customers_name_id", "customers", ["name", "id"])
    op.create_index("ix_customers_type_name_id", "customers", ["type", "name", "id"])

    # Sin claves foráneas: borrar un activo o un cliente no toca el historial
    op.create_table(
        "events",
        sa.Column("id", sa.String(20), primary_key=True),
        sa.Column("asset_id", sa.String(20), nullable=False),
        sa.Column("asset_code", sa.String(20), nullable=False),
        sa.Column("asset_type", sa.String(10), nullable=False),
        sa.Column("event_type", sa.String(30), nullable=False),
        sa.Column("customer_id", sa.String(20), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("variety", sa.String(100), nullable=True),
        sa.Column("valve_type", sa.String(50), nullable=True),
    )
    op.create_index("ix_events_timestamp_id", "events", ["timestamp", "id"])
    op.create_index("ix_events_event_type_timestamp_id", "events", ["event_type", "timestamp", "id"])
    op.create_index("ix_events_asset_type_timestamp_id", "events", ["asset_type", "timestamp", "id"])
    op.create_index(
        "ix_events_asset_type_event_type_timestamp_id", "events", ["asset_type", "event_type", "timestamp", "id"]
    )
    op.create_index("ix_events_customer_id_timestamp_id", "events", ["customer_id", "timestamp", "id"])
    op.create_index("ix_events_asset_id_timestamp_id", "events", ["asset_id", "timestamp", "id"])

    op.create_table(
        "users",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="Operador"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "app_logs",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("level", sa.String(10), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("component", sa.String(100), nullable=False),
        sa.Column("stack", sa.Text(), nullable=True),
        sa.Column("user_email", sa.String(255), nullable=False, server_default="anonymous"),
    )

    op.create_table(
        "routes",
        sa.Column("id", sa.String(20), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDIENTE"),
        sa.Column("created_by", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("stops", sa.JSON(), nullable=False),
    )

    op.create_table(
        "code_counters",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("prefix", sa.String(10), nullable=False, index=True),
        sa.Column("next_seq", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("prefix", name="uq_code_counters_prefix"),
    )


def downgrade() -> None:
    op.drop_table("code_counters")
    op.drop_table("routes")
    op.drop_table("app_logs")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    op.drop_table("events")
    op.drop_table("customers")
    op.drop_table("assets")
