"""
Initial schema - all 8 tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # 1. Needs
    op.create_table(
        "needs",
        sa.Column("need_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("required_quantity", sa.Integer, nullable=False),
        sa.Column("unit_of_measure", sa.String(20), nullable=False),
        sa.Column("max_price_per_unit", sa.Float),
        sa.Column("fulfillment_start_date", sa.DateTime, nullable=False),
        sa.Column("fulfillment_end_date", sa.DateTime, nullable=False),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("department_code", sa.String(50)),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("actual_quantity_received", sa.Integer, nullable=False, server_default="0"),
        sa.Column("progress_percentage", sa.Float, nullable=False, server_default="0"),
        sa.Column("notes", sa.Text),
        sa.Column("created_by", sa.String(255)),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("required_quantity >= 0", name="ck_need_required_nonneg"),
        sa.CheckConstraint("actual_quantity_received >= 0", name="ck_need_actual_nonneg"),
        sa.CheckConstraint("progress_percentage >= 0 AND progress_percentage <= 100", name="ck_need_progress_range"),
        sa.CheckConstraint("fulfillment_start_date <= fulfillment_end_date", name="ck_need_window_order"),
        sa.CheckConstraint(
            "status IN ('active', 'in_progress', 'fulfilled', 'expired', 'cancelled')", name="ck_need_status"
        ),
        sa.CheckConstraint("priority IN ('low', 'medium', 'high', 'critical')", name="ck_need_priority"),
    )
    op.create_index("ix_needs_status", "needs", ["status"])
    op.create_index("ix_needs_window", "needs", ["fulfillment_start_date", "fulfillment_end_date"])

    # 2. Requests
    op.create_table(
        "requests",
        sa.Column("request_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("need_id", sa.Integer, sa.ForeignKey("needs.need_id", ondelete="CASCADE")),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("unit_of_measure", sa.String(20), nullable=False),
        sa.Column("price_per_ton", sa.Float, nullable=False),
        sa.Column("cargo_type", sa.String(100), nullable=False),
        sa.Column("country_of_origin", sa.String(100)),
        sa.Column("supplier_name", sa.String(255)),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("start_date", sa.DateTime),
        sa.Column("end_date", sa.DateTime),
        sa.Column("department_code", sa.String(50)),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("uploaded_file", sa.String(255)),
        sa.Column("created_by", sa.String(255)),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("quantity > 0", name="ck_request_quantity_positive"),
        sa.CheckConstraint(
            "status IN ('pending', 'contracted', 'applied', 'approved', 'rejected', 'in_progress', 'completed')",
            name="ck_request_status",
        ),
    )
    op.create_index("ix_requests_need", "requests", ["need_id"])

    # 3. Contracts
    op.create_table(
        "contracts",
        sa.Column("contract_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("request_id", sa.Integer, sa.ForeignKey("requests.request_id", ondelete="CASCADE")),
        sa.Column("supplier_name", sa.String(255)),
        sa.Column("cargo_type", sa.String(100)),
        sa.Column("country_of_origin", sa.String(100)),
        sa.Column("contract_terms", sa.Text),
        sa.Column("incoterms", sa.String(20)),
        sa.Column("quantity", sa.Integer),
        sa.Column("start_date", sa.DateTime),
        sa.Column("end_date", sa.DateTime),
        sa.Column("uploaded_file", sa.String(255)),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("review_notes", sa.Text),
        sa.Column("created_by", sa.String(255)),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("status IN ('draft', 'under_review', 'approved', 'rejected')", name="ck_contract_status"),
    )
    op.create_index("ix_contracts_request_status", "contracts", ["request_id", "status"])

    # 4. Letters of Credit
    op.create_table(
        "letters_of_credit",
        sa.Column("lc_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("lc_number", sa.String(100)),
        sa.Column("currency", sa.String(3)),
        sa.Column("quantity", sa.Integer, nullable=False, server_default="0"),
        sa.Column("issuing_bank", sa.String(255)),
        sa.Column("advising_bank", sa.String(255)),
        sa.Column("issue_date", sa.DateTime),
        sa.Column("expiry_date", sa.DateTime),
        sa.Column("terms_conditions", sa.Text),
        sa.Column("uploaded_file", sa.String(255)),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("created_by", sa.String(255)),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("quantity >= 0", name="ck_lc_quantity_nonneg"),
    )

    # 5. Vessels
    op.create_table(
        "vessels",
        sa.Column("vessel_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("contract_id", sa.Integer, sa.ForeignKey("contracts.contract_id", ondelete="CASCADE")),
        sa.Column("vessel_name", sa.String(255)),
        sa.Column("cargo_type", sa.String(100)),
        sa.Column("quantity", sa.Integer, nullable=False, server_default="0"),
        sa.Column("country_of_origin", sa.String(100)),
        sa.Column("port_of_discharge", sa.String(255)),
        sa.Column("eta", sa.DateTime),
        sa.Column("shipping_instructions", sa.Text),
        sa.Column("instructions_file", sa.String(255)),
        sa.Column("status", sa.String(20), nullable=False, server_default="nominated"),
        sa.Column("trade_terms", sa.String(3), nullable=False, server_default="FOB"),
        sa.Column("arrival_date", sa.DateTime),
        sa.Column("discharge_start_date", sa.DateTime),
        sa.Column("discharge_end_date", sa.DateTime),
        sa.Column("actual_quantity", sa.Integer),
        sa.Column("customs_release_date", sa.DateTime),
        sa.Column("customs_release_number", sa.String(100)),
        sa.Column("customs_release_file", sa.String(255)),
        sa.Column("customs_release_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("created_by", sa.String(255)),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("quantity >= 0", name="ck_vessel_quantity_nonneg"),
        sa.CheckConstraint("actual_quantity IS NULL OR actual_quantity >= 0", name="ck_vessel_actual_nonneg"),
        sa.CheckConstraint("trade_terms IN ('FOB', 'CIF')", name="ck_vessel_trade_terms"),
        sa.CheckConstraint(
            "status IN ('nominated', 'confirmed', 'in_transit', 'arrived', 'discharging', 'discharged', 'completed')",
            name="ck_vessel_status",
        ),
        sa.CheckConstraint(
            "customs_release_status IN ('pending', 'received', 'verified')", name="ck_vessel_customs_status"
        ),
    )
    op.create_index("ix_vessels_contract_status", "vessels", ["contract_id", "status"])

    # 6. Vessel ↔ LC allocations
    op.create_table(
        "vessel_letters_of_credit",
        sa.Column("allocation_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "vessel_id", sa.Integer, sa.ForeignKey("vessels.vessel_id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "lc_id", sa.Integer, sa.ForeignKey("letters_of_credit.lc_id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("quantity", sa.Integer, nullable=False, server_default="0"),
        sa.Column("notes", sa.Text),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("quantity > 0", name="ck_vessel_lc_quantity_positive"),
    )
    op.create_index("ix_vessel_lc_lc", "vessel_letters_of_credit", ["lc_id"])
    op.create_index("ix_vessel_lc_vessel", "vessel_letters_of_credit", ["vessel_id"])

    # 7. Vessel documents
    op.create_table(
        "vessel_documents",
        sa.Column("document_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "vessel_id", sa.Integer, sa.ForeignKey("vessels.vessel_id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("document_type", sa.String(50), nullable=False),
        sa.Column("document_name", sa.String(255), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_path", sa.String(500), nullable=False),
        sa.Column("uploaded_by", sa.String(255)),
        sa.Column("uploaded_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("notes", sa.Text),
    )
    op.create_index("ix_vessel_documents_vessel", "vessel_documents", ["vessel_id"])

    # 8. Vessel loading ports
    op.create_table(
        "vessel_loading_ports",
        sa.Column("port_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "vessel_id", sa.Integer, sa.ForeignKey("vessels.vessel_id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("port_name", sa.String(255), nullable=False),
        sa.Column("port_code", sa.String(20)),
        sa.Column("country", sa.String(100)),
        sa.Column("loading_date", sa.DateTime),
        sa.Column("expected_quantity", sa.Integer, nullable=False, server_default="0"),
        sa.Column("actual_quantity", sa.Integer),
        sa.Column("loading_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("notes", sa.Text),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "loading_status IN ('pending', 'in_progress', 'completed')", name="ck_loading_status"
        ),
    )
    op.create_index("ix_loading_ports_vessel", "vessel_loading_ports", ["vessel_id"])


def downgrade() -> None:
    op.drop_table("vessel_loading_ports")
    op.drop_table("vessel_documents")
    op.drop_table("vessel_letters_of_credit")
    op.drop_table("vessels")
    op.drop_table("letters_of_credit")
    op.drop_table("contracts")
    op.drop_table("requests")
    op.drop_table("needs")
