from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3b1f0c9a7d21"
down_revision = None
branch_labels = None
depends_on = None


user_type_enum = sa.Enum(
    "visitor",
    "organization_member",
    "walk_in",
    "watchman",
    "admin",
    name="usertype"
)

booking_payment_status_enum = sa.Enum(
    "pending",
    "completed",
    "refunded",
    name="bookingpaymentstatus"
)

booking_status_enum = sa.Enum(
    "confirmed",
    "active",
    "overstay",
    "completed",
    "cancelled",
    name="bookingstatus"
)

payment_record_status_enum = sa.Enum(
    "pending",
    "completed",
    "failed",
    name="paymentrecordstatus"
)

payment_type_enum = sa.Enum(
    "booking",
    "penalty",
    name="paymenttype"
)


def upgrade():
    # 1️⃣ Organizations + users
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("admin_email", sa.String(), nullable=False),
        sa.Column("hourly_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_organizations_id", "organizations", ["id"])

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("mobile", sa.String(), nullable=True),
        sa.Column("user_type", user_type_enum, nullable=False),
        sa.Column(
            "organization_id",
            sa.Integer(),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=True,
        ),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # 2️⃣ Parking lots
    op.create_table(
        "parking_lots",
        sa.Column("lot_id", sa.Integer(), primary_key=True),
        sa.Column(
            "organization_id",
            sa.Integer(),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("lot_name", sa.String(), nullable=False),
        sa.Column("lot_description", sa.String(), nullable=True),
        sa.Column("total_slots", sa.Integer(), nullable=False),
        sa.Column("available_slots", sa.Integer(), nullable=False),
        sa.Column("priority_order", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("allocation_seq", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("organization_id", "lot_name", name="uq_lot_name_per_org"),
        sa.CheckConstraint("total_slots >= 1", name="check_lot_total_slots_positive"),
        sa.CheckConstraint(
            "available_slots >= 0 AND available_slots <= total_slots",
            name="check_lot_available_slots_bounds",
        ),
    )
    op.create_index("ix_parking_lots_lot_id", "parking_lots", ["lot_id"])
    op.create_index("ix_parking_lots_organization_id", "parking_lots", ["organization_id"])

    # 3️⃣ Bookings
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "organization_id",
            sa.Integer(),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("parking_lot_id", sa.Integer(), sa.ForeignKey("parking_lots.lot_id"), nullable=True),
        sa.Column("vehicle_number", sa.String(), nullable=False),
        sa.Column("slot_number", sa.String(), nullable=False),
        sa.Column("booking_start_time", sa.DateTime(), nullable=False),
        sa.Column("booking_end_time", sa.DateTime(), nullable=False),
        sa.Column("duration_hours", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("payment_status", booking_payment_status_enum, nullable=False),
        sa.Column("booking_status", booking_status_enum, nullable=False),
        sa.Column("entry_time", sa.DateTime(), nullable=True),
        sa.Column("exit_time", sa.DateTime(), nullable=True),
        sa.Column("overstay_minutes", sa.Integer(), nullable=True),
        sa.Column("penalty_amount", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index(
        "ix_bookings_lot_slot_status", "bookings", ["parking_lot_id", "slot_number", "booking_status"]
    )
    op.create_index("ix_bookings_status_start", "bookings", ["booking_status", "booking_start_time"])
    op.create_index("ix_bookings_status_end", "bookings", ["booking_status", "booking_end_time"])

    # 4️⃣ Payments
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "booking_id",
            sa.Integer(),
            sa.ForeignKey("bookings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("payment_method", sa.String(), nullable=False),
        sa.Column("transaction_id", sa.String(), nullable=False),
        sa.Column("payment_status", payment_record_status_enum, nullable=False),
        sa.Column("payment_type", payment_type_enum, nullable=False),
        sa.Column("watchman_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("payment_timestamp", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("transaction_id"),
    )
    op.create_index("ix_payments_id", "payments", ["id"])
    op.create_index("ix_payments_booking_id", "payments", ["booking_id"])


def downgrade():
    op.drop_table("payments")
    op.drop_table("bookings")
    op.drop_table("parking_lots")
    op.drop_table("users")
    op.drop_table("organizations")

    bind = op.get_bind()
    for enum_type in (
        payment_type_enum,
        payment_record_status_enum,
        booking_status_enum,
        booking_payment_status_enum,
        user_type_enum,
    ):
        enum_type.drop(bind, checkfirst=True)
