"""initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto')

    # --- Users (owned by the main web app; minimal columns this service reads) ---
    op.create_table('users',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('is_admin', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )

    # --- Items (inventory side; claims may only point at the claimer's own items) ---
    op.create_table('items',
        sa.Column('id', sa.Text(), server_default=sa.text('gen_random_uuid()::text'), primary_key=True),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='items_user_id_fkey', ondelete='CASCADE'),
    )
    op.create_index('idx_items_user_id', 'items', ['user_id'])

    # --- QR Code Packs (print batches) ---
    op.create_table('qr_code_packs',
        sa.Column('id', sa.Text(), server_default=sa.text('gen_random_uuid()::text'), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], name='qr_code_packs_created_by_fkey', ondelete='SET NULL'),
    )

    # --- QR Codes (one row per physical sticker) ---
    op.create_table('qr_codes',
        sa.Column('code_key', sa.String(32), primary_key=True),
        sa.Column('pack_id', sa.Text(), nullable=True),
        sa.Column('minted_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.ForeignKeyConstraint(['pack_id'], ['qr_code_packs.id'], name='qr_codes_pack_id_fkey', ondelete='SET NULL'),
        sa.CheckConstraint("code_key ~ '^[A-Z0-9]+$'", name='qr_codes_code_key_canonical'),
    )
    op.create_index('idx_qr_codes_pack_id', 'qr_codes', ['pack_id'])

    # --- QR Claims: (user, code) -> item ---
    op.create_table('qr_claims',
        sa.Column('id', sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('code_key', sa.String(32), nullable=False),
        sa.Column('item_id', sa.Text(), nullable=False),
        sa.Column('claimed_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='qr_claims_user_id_fkey', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['code_key'], ['qr_codes.code_key'], name='qr_claims_code_key_fkey', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], name='qr_claims_item_id_fkey', ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', 'code_key', name='uq_qr_claims_user_code'),
    )
    op.create_index('idx_qr_claims_code_key', 'qr_claims', ['code_key'])
    op.create_index('idx_qr_claims_item_id', 'qr_claims', ['item_id'])

    # --- QR Scan Events (append-only; no FK so unknown codes are recorded too) ---
    op.create_table('qr_scan_events',
        sa.Column('id', sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column('code_key_raw', sa.String(512), nullable=False, server_default=''),
        sa.Column('code_key_normalized', sa.String(512), nullable=False, server_default=''),
        sa.Column('user_id', sa.Text(), nullable=True),
        sa.Column('platform', sa.String(32), nullable=False, server_default='web'),
        sa.Column('source', sa.String(32), nullable=False, server_default='camera'),
        sa.Column('scanned_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )
    op.create_index('idx_qr_scan_events_code', 'qr_scan_events', ['code_key_normalized'])
    op.create_index('idx_qr_scan_events_scanned_at', 'qr_scan_events', ['scanned_at'])


def downgrade():
    op.drop_table('qr_scan_events')
    op.drop_table('qr_claims')
    op.drop_table('qr_codes')
    op.drop_table('qr_code_packs')
    op.drop_table('items')
    op.drop_table('users')
