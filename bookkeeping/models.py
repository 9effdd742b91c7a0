from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(100), nullable=True)
    vat_number = Column(String(50), nullable=True)
    address_line1 = Column(String(255), nullable=True)
    address_line2 = Column(String(255), nullable=True)
    city = Column(String(255), nullable=True)
    county = Column(String(255), nullable=True)
    postcode = Column(String(20), nullable=True)
    country = Column(String(100), nullable=True)
    payment_terms_days = Column(Integer, nullable=True)

    def formatted_address(self):
        parts = [
            self.address_line1,
            self.address_line2,
            self.city,
            self.county,
            self.postcode,
            self.country,
        ]
        return ", ".join(part for part in parts if part) or None


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(50), nullable=False, unique=True)
    status = Column(String(20), nullable=False, default="draft", index=True)
    issue_date = Column(Date, nullable=False, index=True)
    due_date = Column(Date, nullable=False)
    tax_point = Column(Date, nullable=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    # copied from the customer when the invoice is raised
    customer_name = Column(String(255), nullable=False)
    customer_address = Column(String(1000), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_vat_number = Column(String(50), nullable=True)
    # pence
    subtotal = Column(Integer, nullable=False, default=0)
    vat_amount = Column(Integer, nullable=False, default=0)
    total_amount = Column(Integer, nullable=False, default=0)
    currency = Column(String(10), nullable=False, default="GBP")
    notes = Column(String(4000), nullable=True)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    customer = relationship("Customer")
    items = relationship(
        "InvoiceItem",
        cascade="all, delete-orphan",
        back_populates="invoice",
        order_by="InvoiceItem.sort_order",
    )


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(
        Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    description = Column(String(1000), nullable=False)
    quantity = Column(String(32), nullable=False, default="1")
    unit_price = Column(Integer, nullable=False, default=0)
    vat_rate_id = Column(String(20), nullable=False, default="standard", index=True)
    vat_rate_percent = Column(Numeric(5, 2), nullable=False, default=20)
    net_amount = Column(Integer, nullable=False, default=0)
    vat_amount = Column(Integer, nullable=False, default=0)
    line_total = Column(Integer, nullable=False, default=0)
    sort_order = Column(Integer, nullable=False, default=0)

    invoice = relationship("Invoice", back_populates="items")


class InvoiceSequence(Base):
    __tablename__ = "invoice_sequences"
    __table_args__ = (UniqueConstraint("year_full"),)

    id = Column(Integer, primary_key=True, index=True)
    year_full = Column(Integer, nullable=False)
    next_number = Column(Integer, nullable=False, default=1)
