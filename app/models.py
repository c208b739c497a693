import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .config import DEFAULT_CURRENCY
from .database import Base


def generate_id():
    """Generate an opaque public identifier"""
    return str(uuid.uuid4())


# ============================================================================
# IDENTITY (read-only, owned by the auth provider)
# ============================================================================


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=generate_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    role = Column(String(20), default="customer", nullable=False)  # customer, cleaner, admin
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Address(Base):
    """Service address owned by a customer profile; bookings only reference it"""

    __tablename__ = "addresses"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), index=True, nullable=False)
    type = Column(String(20), default="home", nullable=False)  # home, office, other
    name = Column(String(255), nullable=False)
    address_line_1 = Column(String(255), nullable=False)
    address_line_2 = Column(String(255), nullable=True)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    postal_code = Column(String(20), nullable=False)
    country = Column(String(100), nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def one_line(self) -> str:
        return f"{self.address_line_1}, {self.city}, {self.state} {self.postal_code}"


# ============================================================================
# CATALOG (read-only reference data)
# ============================================================================


class ServiceItem(Base):
    __tablename__ = "service_items"

    id = Column(String(36), primary_key=True, default=generate_id)
    category_id = Column(String(36), nullable=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    base_price = Column(Numeric(12, 2), nullable=False)  # Major units
    unit = Column(String(50), default="service", nullable=False)
    is_quantity_based = Column(Boolean, default=False, nullable=False)
    min_quantity = Column(Integer, default=1, nullable=False)
    max_quantity = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class ServiceExtra(Base):
    __tablename__ = "service_extras"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(12, 2), nullable=False)  # Major units
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


# ============================================================================
# BOOKING AGGREGATE
# ============================================================================


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=generate_id)
    customer_id = Column(String(36), index=True, nullable=False)
    cleaner_id = Column(String(36), index=True, nullable=True)

    # Status workflow: pending → confirmed → in_progress → completed
    # cancelled is reachable from pending and confirmed only
    status = Column(String(20), default="pending", nullable=False, index=True)

    service_date = Column(Date, nullable=False)
    service_time = Column(Time, nullable=False)
    duration_hours = Column(Integer, default=2, nullable=False)

    # Weak reference: addresses belong to the customer, no cascade
    address_id = Column(String(36), ForeignKey("addresses.id"), nullable=False)

    total_price = Column(Numeric(12, 2), nullable=False)  # Major units
    notes = Column(Text, nullable=True)

    # Optimistic concurrency counter, bumped on every write to the row
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    services = relationship(
        "BookingServiceLine", back_populates="booking", cascade="all, delete-orphan"
    )
    extras = relationship(
        "BookingExtraLine", back_populates="booking", cascade="all, delete-orphan"
    )
    address = relationship("Address")
    payment = relationship("Payment", back_populates="booking", uselist=False)

    __mapper_args__ = {"version_id_col": version}


class BookingServiceLine(Base):
    __tablename__ = "booking_services"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_booking_services_quantity"),)

    id = Column(String(36), primary_key=True, default=generate_id)
    booking_id = Column(
        String(36), ForeignKey("bookings.id", ondelete="CASCADE"), index=True, nullable=False
    )
    service_item_id = Column(String(36), ForeignKey("service_items.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)  # Snapshot of catalog price
    total_price = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    booking = relationship("Booking", back_populates="services")
    service_item = relationship("ServiceItem")


class BookingExtraLine(Base):
    __tablename__ = "booking_extras"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_booking_extras_quantity"),)

    id = Column(String(36), primary_key=True, default=generate_id)
    booking_id = Column(
        String(36), ForeignKey("bookings.id", ondelete="CASCADE"), index=True, nullable=False
    )
    service_extra_id = Column(String(36), ForeignKey("service_extras.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)  # Snapshot of catalog price
    total_price = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    booking = relationship("Booking", back_populates="extras")
    service_extra = relationship("ServiceExtra")


# ============================================================================
# PAYMENTS
# ============================================================================


class Payment(Base):
    """Payment attempt settling a booking. Never hard-deleted (audit trail)."""

    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=generate_id)
    booking_id = Column(String(36), ForeignKey("bookings.id"), unique=True, nullable=False)

    # Merchant-generated reference sent to the gateway (BOOK_YYYYMMDD_HHMMSS_XXXXXX)
    reference = Column(String(64), unique=True, index=True, nullable=False)
    # Assigned by the gateway once it processes the reference; idempotency key
    gateway_transaction_id = Column(String(64), unique=True, index=True, nullable=True)

    amount = Column(Integer, nullable=False)  # Minor units (kobo)
    currency = Column(String(3), default=DEFAULT_CURRENCY, nullable=False)

    # pending, completed, failed, refunded
    status = Column(String(20), default="pending", nullable=False, index=True)
    payment_method = Column(String(50), default="card", nullable=False)
    failure_reason = Column(Text, nullable=True)

    paid_at = Column(DateTime, nullable=True)
    refunded_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    booking = relationship("Booking", back_populates="payment")
