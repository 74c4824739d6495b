"""SQLAlchemy ORM models for financings and their billing records"""

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

MONEY = Numeric(12, 2)


class FinancingRow(Base):
    """Installment contract"""

    __tablename__ = "financing"

    id = Column(Integer, primary_key=True, autoincrement=True)
    financing_number = Column(String(32), nullable=True, unique=True)
    total_amount = Column(MONEY, nullable=False)
    payment_frequency = Column(String(16), nullable=False)
    total_quotas = Column(Integer, nullable=False)
    quota_amount = Column(MONEY, nullable=False)
    start_date = Column(Date, nullable=False)
    next_due_date = Column(Date, nullable=False)
    paid_quotas = Column(Integer, nullable=False, default=0)
    partial_payment_credit = Column(MONEY, nullable=False, default=0)
    late_fee_percentage = Column(Numeric(5, 2), nullable=False, default=10)
    total_late_fees = Column(MONEY, nullable=False, default=0)
    total_paid = Column(MONEY, nullable=False, default=0)
    current_balance = Column(MONEY, nullable=False, default=0)
    max_late_quotas_allowed = Column(Integer, nullable=False, default=3)
    status = Column(String(16), nullable=False, default="activo", index=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    records = relationship(
        "BillingRecordRow",
        back_populates="financing",
        cascade="all, delete-orphan",
        order_by="BillingRecordRow.sequence",
    )


class BillingRecordRow(Base):
    """Scheduled quota or registered payment"""

    __tablename__ = "billing_record"
    __table_args__ = (UniqueConstraint("financing_id", "quota_number", name="uq_billing_record_quota"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    financing_id = Column(Integer, ForeignKey("financing.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    receipt_number = Column(String(48), nullable=True, unique=True)
    quota_number = Column(Integer, nullable=False)
    amount = Column(MONEY, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(String(16), nullable=False, default="pendiente", index=True)
    due_date = Column(Date, nullable=False)
    payment_date = Column(Date, nullable=True)
    quotas_covered = Column(Integer, nullable=False, default=1)
    quota_amount_covered = Column(MONEY, nullable=True)
    advance_credit = Column(MONEY, nullable=False, default=0)
    late_fee_amount = Column(MONEY, nullable=False, default=0)
    days_late = Column(Integer, nullable=False, default=0)
    confirmation_number = Column(Text, nullable=True)
    comments = Column(Text, nullable=True)
    is_generated = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    financing = relationship("FinancingRow", back_populates="records")


class ReceiptCounterRow(Base):
    """Last receipt number issued per prefix (one row per month)"""

    __tablename__ = "receipt_counter"

    prefix = Column(String(32), primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)
