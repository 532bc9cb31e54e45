"""Create carrier, license, document and sequence tables

Revision ID: create_freight_document_tables
Revises:
Create Date: 2026-10-19

Carriers and their per-destination licenses, CRT and MIC/DTA documents,
and the per-bucket sequence counters with their audit log.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'create_freight_document_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all freight document tables."""

    op.create_table(
        'carriers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('home_country', sa.String(length=2), nullable=False,
                  comment='ISO 3166-1 alpha-2 code of the registration country'),
        sa.Column('registration_number', sa.String(length=50), nullable=False),
        sa.Column('initial_crt_number', sa.Integer(), nullable=False),
        sa.Column('initial_mic_dta_number', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_carriers_home_country', 'carriers', ['home_country'])
    op.create_index('ix_carriers_registration_number', 'carriers', ['registration_number'], unique=True)

    op.create_table(
        'carrier_licenses',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('carrier_id', sa.Uuid(), nullable=False),
        sa.Column('destination_country', sa.String(length=2), nullable=False),
        sa.Column('license_code', sa.String(length=50), nullable=False),
        sa.Column('expiry_date', sa.Date(), nullable=False),
        sa.Column('idoneidade_number', sa.String(length=50), nullable=True),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['carrier_id'], ['carriers.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('carrier_id', 'expiry_date', name='uq_carrier_license_expiry'),
    )
    op.create_index('ix_carrier_licenses_carrier_id', 'carrier_licenses', ['carrier_id'])

    op.create_table(
        'crts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('number', sa.String(length=100), nullable=False),
        sa.Column('sequence_number', sa.Integer(), nullable=False),
        sa.Column('carrier_id', sa.Uuid(), nullable=False),
        sa.Column('origin_country', sa.String(length=2), nullable=False),
        sa.Column('destination_country', sa.String(length=2), nullable=False),
        sa.Column('license_code', sa.String(length=50), nullable=True),
        sa.Column('commercial_invoice', sa.String(length=100), nullable=False),
        sa.Column('exporter', sa.String(length=200), nullable=False),
        sa.Column('importer', sa.String(length=200), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['carrier_id'], ['carriers.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('carrier_id', 'sequence_number', name='uq_crt_carrier_sequence'),
    )
    op.create_index('ix_crts_number', 'crts', ['number'])
    op.create_index('ix_crts_carrier_id', 'crts', ['carrier_id'])
    op.create_index('ix_crts_created_at', 'crts', ['created_at'])

    op.create_table(
        'mic_dtas',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('number', sa.String(length=100), nullable=False),
        sa.Column('sequence_number', sa.Integer(), nullable=False),
        sa.Column('mic_dta_type', sa.String(length=20), nullable=False, comment='NORMAL, LASTRE'),
        sa.Column('carrier_id', sa.Uuid(), nullable=False),
        sa.Column('crt_id', sa.Uuid(), nullable=True),
        sa.Column('origin_country', sa.String(length=2), nullable=False),
        sa.Column('destination_country', sa.String(length=2), nullable=False),
        sa.Column('license_code', sa.String(length=50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['carrier_id'], ['carriers.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['crt_id'], ['crts.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'carrier_id', 'mic_dta_type', 'origin_country', 'destination_country', 'sequence_number',
            name='uq_mic_dta_bucket_sequence'
        ),
    )
    op.create_index('ix_mic_dtas_number', 'mic_dtas', ['number'])
    op.create_index('ix_mic_dtas_mic_dta_type', 'mic_dtas', ['mic_dta_type'])
    op.create_index('ix_mic_dtas_carrier_id', 'mic_dtas', ['carrier_id'])
    op.create_index('ix_mic_dtas_crt_id', 'mic_dtas', ['crt_id'])
    op.create_index('ix_mic_dtas_created_at', 'mic_dtas', ['created_at'])

    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('carrier_id', sa.Uuid(), nullable=False),
        sa.Column('document_type', sa.String(length=20), nullable=False, comment='CRT, MIC_DTA'),
        sa.Column('scope_key', sa.String(length=50), nullable=False,
                  comment='Partition inside the document type'),
        sa.Column('current_number', sa.Integer(), nullable=False, comment='Last issued sequence number'),
        sa.Column('version', sa.Integer(), nullable=False,
                  comment='Incremented on every reservation (compare-and-swap guard)'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['carrier_id'], ['carriers.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('carrier_id', 'document_type', 'scope_key', name='uq_document_sequence_bucket'),
    )
    op.create_index('ix_document_sequences_carrier_id', 'document_sequences', ['carrier_id'])

    op.create_table(
        'document_sequence_audit',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('carrier_id', sa.Uuid(), nullable=False),
        sa.Column('document_type', sa.String(length=20), nullable=False),
        sa.Column('scope_key', sa.String(length=50), nullable=False),
        sa.Column('operation', sa.String(length=20), nullable=False, comment='RESERVE, MANUAL_SYNC'),
        sa.Column('old_number', sa.Integer(), nullable=True),
        sa.Column('new_number', sa.Integer(), nullable=True),
        sa.Column('first_number', sa.Integer(), nullable=True),
        sa.Column('block_size', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_document_sequence_audit_carrier_id', 'document_sequence_audit', ['carrier_id'])


def downgrade() -> None:
    """Drop all freight document tables."""
    op.drop_table('document_sequence_audit')
    op.drop_table('document_sequences')
    op.drop_table('mic_dtas')
    op.drop_table('crts')
    op.drop_table('carrier_licenses')
    op.drop_table('carriers')
