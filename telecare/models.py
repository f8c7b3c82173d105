import enum
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    TypeDecorator,
    text,
)
from sqlalchemy.orm import relationship

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Stores naive UTC and always hands back timezone-aware UTC datetimes"""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            raise ValueError("UTCDateTime requires a timezone-aware datetime")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        return value.replace(tzinfo=timezone.utc)


class Role(str, enum.Enum):
    PATIENT = "PATIENT"
    DOCTOR = "DOCTOR"
    ADMIN = "ADMIN"
    UNASSIGNED = "UNASSIGNED"


class VerificationStatus(str, enum.Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class AvailabilityStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TransactionType(str, enum.Enum):
    CREDIT_PURCHASE = "CREDIT_PURCHASE"
    APPOINTMENT_DEDUCTION = "APPOINTMENT_DEDUCTION"
    APPOINTMENT_CREDIT = "APPOINTMENT_CREDIT"
    ADMIN_ADJUSTMENT = "ADMIN_ADJUSTMENT"


class PayoutStatus(str, enum.Enum):
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"


class Account(Base):
    __tablename__ = "accounts"
    __table_args__ = (CheckConstraint("credits >= 0", name="ck_accounts_credits_non_negative"),)

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(String(255), unique=True, index=True, nullable=False)  # identity provider subject
    email = Column(String(255), nullable=True)
    name = Column(String(255), nullable=True)
    role = Column(Enum(Role), default=Role.UNASSIGNED, nullable=False)
    verification_status = Column(Enum(VerificationStatus), nullable=True)  # doctors only
    credits = Column(Integer, default=0, nullable=False)
    # Doctor profile, captured at onboarding
    specialty = Column(String(100), nullable=True)
    experience = Column(Integer, nullable=True)  # years
    credential_url = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    availability = relationship("AvailabilityWindow", back_populates="doctor", uselist=False)


class AvailabilityWindow(Base):
    __tablename__ = "availability_windows"

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("accounts.id"), unique=True, nullable=False)
    start_time = Column(Time, nullable=False)  # time of day in the clinic timezone
    end_time = Column(Time, nullable=False)
    status = Column(Enum(AvailabilityStatus), default=AvailabilityStatus.AVAILABLE, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    doctor = relationship("Account", back_populates="availability")


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        # Backstop for races on the same slot; the booking transaction does the general overlap check
        Index(
            "uq_appointments_doctor_scheduled_start",
            "doctor_id",
            "start_time",
            unique=True,
            postgresql_where=text("status = 'SCHEDULED'"),
            sqlite_where=text("status = 'SCHEDULED'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    start_time = Column(UTCDateTime, nullable=False, index=True)
    end_time = Column(UTCDateTime, nullable=False)
    status = Column(Enum(AppointmentStatus), default=AppointmentStatus.SCHEDULED, nullable=False)
    description = Column(Text, nullable=True)
    video_session_id = Column(String(255), nullable=True)
    video_session_token = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    patient = relationship("Account", foreign_keys=[patient_id])
    doctor = relationship("Account", foreign_keys=[doctor_id])


class CreditTransaction(Base):
    """Append-only ledger entry; Account.credits is the running sum of these rows"""

    __tablename__ = "credit_transactions"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)  # signed
    type = Column(Enum(TransactionType), nullable=False)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="SET NULL"), nullable=True)
    payout_id = Column(Integer, ForeignKey("payouts.id"), nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, index=True)


class Payout(Base):
    __tablename__ = "payouts"

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    credits = Column(Integer, nullable=False)
    status = Column(Enum(PayoutStatus), default=PayoutStatus.PROCESSING, nullable=False)
    processed_at = Column(UTCDateTime, nullable=True)
    processed_by = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    created_at = Column(UTCDateTime, default=utcnow)

    doctor = relationship("Account", foreign_keys=[doctor_id])
