"""
Document Sequence Model for Atomic Number Generation

NUMBERING RULES:
━━━━━━━━━━━━━━━━
• One counter row per bucket: (carrier, document type, scope key)
• CRT scope key:      "" (the carrier alone)
• MIC/DTA scope key:  "{TYPE}:{ORIGIN}-{DESTINATION}", e.g. "NORMAL:BR-PY"
• Continuous sequence, never reset, never reused
• Row lock (SELECT FOR UPDATE) + version compare-and-swap on every reservation

USAGE:
━━━━━━
    from freightdocs.services.document_sequence_service import SequenceAllocator

    async def reserve(db, carrier):
        allocator = SequenceAllocator(db)
        numbers = await allocator.reserve(identity, SequenceScope.for_crt("BR", "PY"), 3)
        # Returns: [1, 2, 3] on the first reservation
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from freightdocs.database import Base
from freightdocs.db_types import UUIDType


class DocumentSequenceAudit(Base):
    """
    Audit log for document sequence operations.

    Tracks every reserved block and manual repair for compliance and
    debugging purposes. Rows are written inside the reserving transaction,
    so a rolled-back reservation leaves no audit trail either.
    """
    __tablename__ = "document_sequence_audit"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    carrier_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        nullable=False,
        index=True
    )
    document_type: Mapped[str] = mapped_column(String(20), nullable=False)
    scope_key: Mapped[str] = mapped_column(String(50), nullable=False)
    operation: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="RESERVE, MANUAL_SYNC"
    )
    old_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    new_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    first_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    block_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )


class DocumentSequence(Base):
    """
    Per-bucket counter for atomic number reservation.

    Example:
        document_type = "MIC_DTA"
        scope_key = "LASTRE:BR-PY"
        current_number = 42
        → Next LASTRE number for the carrier on BR→PY: 43
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        UniqueConstraint(
            "carrier_id", "document_type", "scope_key",
            name="uq_document_sequence_bucket"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    # Bucket Identification
    carrier_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("carriers.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    document_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="CRT, MIC_DTA"
    )
    scope_key: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="",
        comment="Partition inside the document type"
    )

    # Sequence Counter
    current_number: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Last issued sequence number"
    )
    version: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Incremented on every reservation (compare-and-swap guard)"
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

    def __repr__(self) -> str:
        return f"<DocumentSequence({self.document_type}/{self.scope_key or '-'}: {self.current_number})>"
