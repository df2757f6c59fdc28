"""
TradeOps Database Models

8 tables for the import-operations tracking platform.

Tables:
  Demand (1-2):
  1. needs                     - Statements of need (quantity target + fulfillment window)
  2. requests                  - Contract requests raised against a need

  Contracting & Finance (3-4):
  3. contracts                 - Supplier contracts (review gate before approval)
  4. letters_of_credit         - LCs with a face quantity allocated across vessels

  Shipping (5-8):
  5. vessels                   - Vessel nominations, discharge and customs tracking
  6. vessel_letters_of_credit  - LC → vessel quantity allocations (junction)
  7. vessel_documents          - Shipping documents attached to a vessel
  8. vessel_loading_ports      - Loading ports visited by a vessel
"""

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from db.session import Base

NEED_STATUSES = ("active", "in_progress", "fulfilled", "expired", "cancelled")
REQUEST_STATUSES = ("pending", "contracted", "applied", "approved", "rejected", "in_progress", "completed")
CONTRACT_STATUSES = ("draft", "under_review", "approved", "rejected")
VESSEL_STATUSES = ("nominated", "confirmed", "in_transit", "arrived", "discharging", "discharged", "completed")
CUSTOMS_RELEASE_STATUSES = ("pending", "received", "verified")
LOADING_STATUSES = ("pending", "in_progress", "completed")
PRIORITIES = ("low", "medium", "high", "critical")


def _in_clause(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


# ─── 1. Needs ───────────────────────────────────────────────────────────────


class Need(Base):
    """A demand-side requirement with a quantity target and a fulfillment window.

    actual_quantity_received, progress_percentage and status are written by
    the fulfillment aggregator (trade.fulfillment).
    """

    __tablename__ = "needs"

    need_id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(String(50), nullable=False)  # raw_materials, equipment, services
    required_quantity = Column(Integer, nullable=False)
    unit_of_measure = Column(String(20), nullable=False)
    max_price_per_unit = Column(Float)  # Budget constraint
    fulfillment_start_date = Column(DateTime, nullable=False)
    fulfillment_end_date = Column(DateTime, nullable=False)
    priority = Column(String(20), nullable=False, default="medium")
    department_code = Column(String(50))
    status = Column(String(20), nullable=False, default="active")
    actual_quantity_received = Column(Integer, nullable=False, default=0)
    progress_percentage = Column(Float, nullable=False, default=0.0)
    notes = Column(Text)
    created_by = Column(String(255))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_needs_status", "status"),
        Index("ix_needs_window", "fulfillment_start_date", "fulfillment_end_date"),
        CheckConstraint("required_quantity >= 0", name="ck_need_required_nonneg"),
        CheckConstraint("actual_quantity_received >= 0", name="ck_need_actual_nonneg"),
        CheckConstraint(
            "progress_percentage >= 0 AND progress_percentage <= 100", name="ck_need_progress_range"
        ),
        CheckConstraint("fulfillment_start_date <= fulfillment_end_date", name="ck_need_window_order"),
        CheckConstraint(_in_clause("status", NEED_STATUSES), name="ck_need_status"),
        CheckConstraint(_in_clause("priority", PRIORITIES), name="ck_need_priority"),
    )

    requests = relationship("TradeRequest", back_populates="need", cascade="all, delete-orphan")


# ─── 2. Requests ────────────────────────────────────────────────────────────


class TradeRequest(Base):
    """A contract request raised against a need (table: requests)."""

    __tablename__ = "requests"

    request_id = Column(Integer, primary_key=True, autoincrement=True)
    need_id = Column(Integer, ForeignKey("needs.need_id", ondelete="CASCADE"), nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    quantity = Column(Integer, nullable=False)
    unit_of_measure = Column(String(20), nullable=False)
    price_per_ton = Column(Float, nullable=False)
    cargo_type = Column(String(100), nullable=False)
    country_of_origin = Column(String(100))
    supplier_name = Column(String(255))
    priority = Column(String(20), nullable=False, default="medium")
    start_date = Column(DateTime)
    end_date = Column(DateTime)
    department_code = Column(String(50))
    status = Column(String(20), nullable=False, default="pending")
    uploaded_file = Column(String(255))
    created_by = Column(String(255))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_requests_need", "need_id"),
        CheckConstraint("quantity > 0", name="ck_request_quantity_positive"),
        CheckConstraint(_in_clause("status", REQUEST_STATUSES), name="ck_request_status"),
    )

    need = relationship("Need", back_populates="requests")
    contracts = relationship("Contract", back_populates="request", cascade="all, delete-orphan")


# ─── 3. Contracts ───────────────────────────────────────────────────────────


class Contract(Base):
    __tablename__ = "contracts"

    contract_id = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(Integer, ForeignKey("requests.request_id", ondelete="CASCADE"), nullable=True)
    supplier_name = Column(String(255))
    cargo_type = Column(String(100))
    country_of_origin = Column(String(100))
    contract_terms = Column(Text)
    incoterms = Column(String(20))
    quantity = Column(Integer)
    start_date = Column(DateTime)
    end_date = Column(DateTime)
    uploaded_file = Column(String(255))
    status = Column(String(20), nullable=False, default="draft")
    review_notes = Column(Text)
    created_by = Column(String(255))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_contracts_request_status", "request_id", "status"),
        CheckConstraint(_in_clause("status", CONTRACT_STATUSES), name="ck_contract_status"),
    )

    request = relationship("TradeRequest", back_populates="contracts")
    vessels = relationship("Vessel", back_populates="contract", cascade="all, delete-orphan")


# ─── 4. Letters of Credit ───────────────────────────────────────────────────


class LetterOfCredit(Base):
    """A letter of credit. Allocated/remaining quantity is always derived
    from vessel_letters_of_credit rows; there is no stored counter."""

    __tablename__ = "letters_of_credit"

    lc_id = Column(Integer, primary_key=True, autoincrement=True)
    lc_number = Column(String(100))
    currency = Column(String(3))
    quantity = Column(Integer, nullable=False, default=0)  # Face quantity (tons)
    issuing_bank = Column(String(255))
    advising_bank = Column(String(255))
    issue_date = Column(DateTime)
    expiry_date = Column(DateTime)
    terms_conditions = Column(Text)
    uploaded_file = Column(String(255))
    status = Column(String(20), nullable=False, default="active")
    created_by = Column(String(255))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (CheckConstraint("quantity >= 0", name="ck_lc_quantity_nonneg"),)

    allocations = relationship("VesselLetterOfCredit", back_populates="letter_of_credit", cascade="all, delete-orphan")


# ─── 5. Vessels ─────────────────────────────────────────────────────────────


class Vessel(Base):
    __tablename__ = "vessels"

    vessel_id = Column(Integer, primary_key=True, autoincrement=True)
    contract_id = Column(Integer, ForeignKey("contracts.contract_id", ondelete="CASCADE"), nullable=True)
    vessel_name = Column(String(255))
    cargo_type = Column(String(100))
    quantity = Column(Integer, nullable=False, default=0)  # Contractual (planned) tons
    country_of_origin = Column(String(100))
    port_of_discharge = Column(String(255))
    eta = Column(DateTime)
    shipping_instructions = Column(Text)
    instructions_file = Column(String(255))
    status = Column(String(20), nullable=False, default="nominated")
    trade_terms = Column(String(3), nullable=False, default="FOB")  # FOB or CIF

    # Discharge tracking
    arrival_date = Column(DateTime)
    discharge_start_date = Column(DateTime)
    discharge_end_date = Column(DateTime)
    actual_quantity = Column(Integer)  # Discharged to date

    # Customs release
    customs_release_date = Column(DateTime)
    customs_release_number = Column(String(100))
    customs_release_file = Column(String(255))
    customs_release_status = Column(String(20), nullable=False, default="pending")

    created_by = Column(String(255))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_vessels_contract_status", "contract_id", "status"),
        CheckConstraint("quantity >= 0", name="ck_vessel_quantity_nonneg"),
        CheckConstraint("actual_quantity IS NULL OR actual_quantity >= 0", name="ck_vessel_actual_nonneg"),
        CheckConstraint("trade_terms IN ('FOB', 'CIF')", name="ck_vessel_trade_terms"),
        CheckConstraint(_in_clause("status", VESSEL_STATUSES), name="ck_vessel_status"),
        CheckConstraint(
            _in_clause("customs_release_status", CUSTOMS_RELEASE_STATUSES), name="ck_vessel_customs_status"
        ),
    )

    contract = relationship("Contract", back_populates="vessels")
    allocations = relationship("VesselLetterOfCredit", back_populates="vessel", cascade="all, delete-orphan")
    documents = relationship("VesselDocument", back_populates="vessel", cascade="all, delete-orphan")
    loading_ports = relationship("VesselLoadingPort", back_populates="vessel", cascade="all, delete-orphan")


# ─── 6. Vessel ↔ LC Allocations ─────────────────────────────────────────────


class VesselLetterOfCredit(Base):
    """Quantity allocated from one letter of credit to one vessel."""

    __tablename__ = "vessel_letters_of_credit"

    allocation_id = Column(Integer, primary_key=True, autoincrement=True)
    vessel_id = Column(Integer, ForeignKey("vessels.vessel_id", ondelete="CASCADE"), nullable=False)
    lc_id = Column(Integer, ForeignKey("letters_of_credit.lc_id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_vessel_lc_lc", "lc_id"),
        Index("ix_vessel_lc_vessel", "vessel_id"),
        CheckConstraint("quantity > 0", name="ck_vessel_lc_quantity_positive"),
    )

    vessel = relationship("Vessel", back_populates="allocations")
    letter_of_credit = relationship("LetterOfCredit", back_populates="allocations")


# ─── 7. Vessel Documents ────────────────────────────────────────────────────


class VesselDocument(Base):
    __tablename__ = "vessel_documents"

    document_id = Column(Integer, primary_key=True, autoincrement=True)
    vessel_id = Column(Integer, ForeignKey("vessels.vessel_id", ondelete="CASCADE"), nullable=False)
    document_type = Column(String(50), nullable=False)  # bill_of_lading, commercial_invoice, customs_release, ...
    document_name = Column(String(255), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)
    uploaded_by = Column(String(255))
    uploaded_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    notes = Column(Text)

    __table_args__ = (Index("ix_vessel_documents_vessel", "vessel_id"),)

    vessel = relationship("Vessel", back_populates="documents")


# ─── 8. Vessel Loading Ports ────────────────────────────────────────────────


class VesselLoadingPort(Base):
    __tablename__ = "vessel_loading_ports"

    port_id = Column(Integer, primary_key=True, autoincrement=True)
    vessel_id = Column(Integer, ForeignKey("vessels.vessel_id", ondelete="CASCADE"), nullable=False)
    port_name = Column(String(255), nullable=False)
    port_code = Column(String(20))
    country = Column(String(100))
    loading_date = Column(DateTime)
    expected_quantity = Column(Integer, nullable=False, default=0)
    actual_quantity = Column(Integer)
    loading_status = Column(String(20), nullable=False, default="pending")
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_loading_ports_vessel", "vessel_id"),
        CheckConstraint(_in_clause("loading_status", LOADING_STATUSES), name="ck_loading_status"),
    )

    vessel = relationship("Vessel", back_populates="loading_ports")
