"""CRT and MIC/DTA document models."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import String, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from freightdocs.database import Base
from freightdocs.db_types import UUIDType


class DocumentType(str, Enum):
    """Document families that own independent sequences."""
    CRT = "CRT"
    MIC_DTA = "MIC_DTA"


class MicDtaType(str, Enum):
    """MIC/DTA variants."""
    NORMAL = "NORMAL"    # Loaded truck, tied to a CRT
    LASTRE = "LASTRE"    # Empty truck, issued on its own


class Crt(Base):
    """
    Road transport manifest (Conhecimento de Transporte Rodoviário).

    Immutable once issued. The sequence is scoped to the carrier.
    """
    __tablename__ = "crts"
    __table_args__ = (
        UniqueConstraint(
            "carrier_id", "sequence_number",
            name="uq_crt_carrier_sequence"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    number: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        comment="Display number, e.g. BR.4521.00042"
    )
    sequence_number: Mapped[int] = mapped_column(Integer, nullable=False)

    carrier_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("carriers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    # Route
    origin_country: Mapped[str] = mapped_column(String(2), nullable=False)
    destination_country: Mapped[str] = mapped_column(String(2), nullable=False)
    license_code: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="License that authorized the route"
    )

    # Shipment
    commercial_invoice: Mapped[str] = mapped_column(String(100), nullable=False)
    exporter: Mapped[str] = mapped_column(String(200), nullable=False)
    importer: Mapped[str] = mapped_column(String(200), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True
    )

    # Relationships
    mic_dtas: Mapped[List["MicDta"]] = relationship(
        "MicDta",
        back_populates="crt"
    )

    def __repr__(self) -> str:
        return f"<Crt(number='{self.number}', route={self.origin_country}->{self.destination_country})>"


class MicDta(Base):
    """
    Customs cargo manifest (Manifesto Internacional de Carga / Declaração de
    Trânsito Aduaneiro).

    NORMAL documents inherit the route of their CRT; LASTRE documents are
    issued for empty trucks. Each variant numbers independently per route.
    """
    __tablename__ = "mic_dtas"
    __table_args__ = (
        UniqueConstraint(
            "carrier_id", "mic_dta_type", "origin_country", "destination_country", "sequence_number",
            name="uq_mic_dta_bucket_sequence"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    number: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    sequence_number: Mapped[int] = mapped_column(Integer, nullable=False)

    mic_dta_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        index=True,
        comment="NORMAL, LASTRE"
    )

    carrier_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("carriers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    crt_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("crts.id", ondelete="RESTRICT"),
        nullable=True,
        index=True
    )

    # Route
    origin_country: Mapped[str] = mapped_column(String(2), nullable=False)
    destination_country: Mapped[str] = mapped_column(String(2), nullable=False)
    license_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True
    )

    # Relationships
    crt: Mapped[Optional["Crt"]] = relationship(
        "Crt",
        back_populates="mic_dtas"
    )

    def __repr__(self) -> str:
        return f"<MicDta(number='{self.number}', type='{self.mic_dta_type}')>"
