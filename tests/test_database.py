"""Tests for SQLite session setup: WAL journal and writer-only immediate transactions."""
import asyncio

import pytest
from sqlalchemy import func, select, text

from freightdocs.database import begin_write
from freightdocs.models.document import Crt


def make_crt(carrier_id, sequence_number=1):
    return Crt(
        number=f"BR.4521.{sequence_number:05}",
        sequence_number=sequence_number,
        carrier_id=carrier_id,
        origin_country="BR",
        destination_country="PY",
        commercial_invoice="INV-1",
        exporter="Exporter",
        importer="Importer",
    )


class TestSqliteTransactions:

    @pytest.mark.asyncio
    async def test_connections_use_wal(self, db):
        mode = (await db.execute(text("PRAGMA journal_mode"))).scalar()
        assert mode.lower() == "wal"

    @pytest.mark.asyncio
    async def test_reader_does_not_wait_for_open_writer(self, session_factory, carrier_id):
        async with session_factory() as writer, session_factory() as reader:
            await begin_write(writer)
            writer.add(make_crt(carrier_id))
            await writer.flush()

            result = await asyncio.wait_for(reader.execute(select(func.count(Crt.id))), timeout=5)
            assert result.scalar() == 0

            await writer.commit()
            await reader.rollback()
            assert (await reader.execute(select(func.count(Crt.id)))).scalar() == 1

    @pytest.mark.asyncio
    async def test_begin_write_opens_transaction(self, db):
        assert not db.in_transaction()
        await begin_write(db)
        assert db.in_transaction()

        # Already open: nothing changes
        await begin_write(db)
        assert db.in_transaction()
        await db.rollback()
