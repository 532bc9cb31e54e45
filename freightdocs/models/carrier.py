"""Carrier and per-destination license models."""
import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import String, Integer, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from freightdocs.database import Base
from freightdocs.db_types import UUIDType


class LicenseStatus(str, Enum):
    """License status relative to a reference date."""
    VALID = "VALID"
    EXPIRING_SOON = "EXPIRING_SOON"    # 0..30 days left
    EXPIRED = "EXPIRED"                # expiry date already passed


class Carrier(Base):
    """
    Freight carrier registered to issue CRT and MIC/DTA documents.

    A carrier is registered in one home country and holds one license per
    foreign destination it is authorized to serve.
    """
    __tablename__ = "carriers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    # Identification
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    home_country: Mapped[str] = mapped_column(
        String(2),
        nullable=False,
        index=True,
        comment="ISO 3166-1 alpha-2 code of the registration country"
    )
    registration_number: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True
    )

    # Numbering seeds
    initial_crt_number: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
        comment="First CRT sequence number ever issued"
    )
    initial_mic_dta_number: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
        comment="First MIC/DTA sequence number ever issued, per bucket"
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    licenses: Mapped[List["CarrierLicense"]] = relationship(
        "CarrierLicense",
        back_populates="carrier",
        cascade="all, delete-orphan",
        order_by="CarrierLicense.position",
        lazy="selectin"
    )

    @property
    def destination_countries(self) -> List[str]:
        return [lic.destination_country for lic in self.licenses]

    def __repr__(self) -> str:
        return f"<Carrier(name='{self.name}', home_country='{self.home_country}')>"


class CarrierLicense(Base):
    """
    License authorizing a carrier to run between its home country and one
    destination country until the expiry date.
    """
    __tablename__ = "carrier_licenses"
    __table_args__ = (
        UniqueConstraint(
            "carrier_id", "expiry_date",
            name="uq_carrier_license_expiry"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    carrier_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("carriers.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    destination_country: Mapped[str] = mapped_column(String(2), nullable=False)
    license_code: Mapped[str] = mapped_column(String(50), nullable=False)
    expiry_date: Mapped[date] = mapped_column(Date, nullable=False)
    idoneidade_number: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="Standing-eligibility number, required for foreign carriers"
    )

    # Insertion order within the carrier
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    carrier: Mapped["Carrier"] = relationship("Carrier", back_populates="licenses")

    def __repr__(self) -> str:
        return f"<CarrierLicense({self.destination_country}:{self.license_code} until {self.expiry_date})>"
