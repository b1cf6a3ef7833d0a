"""Create CAFE import tables

Revision ID: 0001_create_cafe_tables
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_create_cafe_tables'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Tiendas, facturas importadas (con líneas) y sesiones de compras (con items)."""
    op.create_table(
        'stores',
        sa.Column('id', sa.String(36), primary_key=True, comment='Identificador único de la tienda'),
        sa.Column('ruc', sa.String(64), nullable=True, comment='RUC del comercio (sin DV)'),
        sa.Column('name', sa.String(255), nullable=False, comment='Nombre comercial'),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default=sa.false(),
                  comment='RUC verificado por un administrador'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_stores_ruc', 'stores', ['ruc'], unique=True)

    op.create_table(
        'imported_invoices',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('cufe', sa.String(128), nullable=False, comment='CUFE normalizado (mayúsculas)'),
        sa.Column('invoice_number', sa.String(64), nullable=False, server_default=''),
        sa.Column('point_of_sale', sa.String(64), nullable=True),
        sa.Column('issue_date', sa.String(64), nullable=False, server_default='', comment='Fecha nativa del registro'),
        sa.Column('authorization_date', sa.String(64), nullable=True),
        sa.Column('authorization_protocol', sa.String(128), nullable=True),
        sa.Column('emitter_ruc', sa.String(64), nullable=False),
        sa.Column('emitter_name', sa.String(255), nullable=False),
        sa.Column('emitter_dv', sa.String(8), nullable=True),
        sa.Column('emitter_branch', sa.String(255), nullable=True),
        sa.Column('emitter_address', sa.String(500), nullable=True),
        sa.Column('emitter_phone', sa.String(64), nullable=True),
        sa.Column('receiver_ruc', sa.String(64), nullable=True),
        sa.Column('receiver_name', sa.String(255), nullable=True),
        sa.Column('receiver_type', sa.String(16), nullable=True),
        sa.Column('subtotal', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('total_tax', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('grand_total', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('taxable_amount_7', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('taxable_amount_10', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('taxable_amount_15', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('exempt_amount', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('discount_amount', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('payment_method', sa.String(32), nullable=True),
        sa.Column('amount_paid', sa.Numeric(15, 2), nullable=True),
        sa.Column('change_amount', sa.Numeric(15, 2), nullable=True),
        sa.Column('item_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('shopping_session_id', sa.String(36), nullable=True),
        sa.Column('invoice_data', sa.JSON(), nullable=True, comment='Copia completa de la factura parseada'),
        sa.Column('source_url', sa.String(1000), nullable=True),
        sa.Column('raw_xml', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_imported_invoices_cufe', 'imported_invoices', ['cufe'], unique=True)
    op.create_index('ix_imported_invoices_emitter_ruc', 'imported_invoices', ['emitter_ruc'])
    op.create_index('ix_imported_invoices_shopping_session_id', 'imported_invoices', ['shopping_session_id'])

    op.create_table(
        'imported_invoice_items',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('imported_invoice_id', sa.String(36),
                  sa.ForeignKey('imported_invoices.id', ondelete='CASCADE'), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False, comment='Posición 1-based en la factura'),
        sa.Column('description', sa.String(2000), nullable=False),
        sa.Column('quantity', sa.Numeric(15, 4), nullable=False),
        sa.Column('unit', sa.String(50), nullable=True),
        sa.Column('unit_price', sa.Numeric(15, 4), nullable=False),
        sa.Column('total_price', sa.Numeric(15, 2), nullable=False),
        sa.Column('tax_code', sa.String(8), nullable=True),
        sa.Column('tax_rate', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('tax_amount', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('product_code', sa.String(100), nullable=True),
    )
    op.create_index('ix_imported_invoice_items_imported_invoice_id', 'imported_invoice_items', ['imported_invoice_id'])

    op.create_table(
        'shopping_sessions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('store_id', sa.String(36), sa.ForeignKey('stores.id', ondelete='SET NULL'), nullable=True),
        sa.Column('store_name', sa.String(255), nullable=True, comment='Texto libre cuando no hay tienda asociada'),
        sa.Column('date', sa.String(32), nullable=False),
        sa.Column('mode', sa.String(32), nullable=False, server_default='completed'),
        sa.Column('notes', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'shopping_items',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('session_id', sa.String(36),
                  sa.ForeignKey('shopping_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=True, comment='Línea de la factura de origen'),
        sa.Column('product_name', sa.String(2000), nullable=False),
        sa.Column('price', sa.Numeric(15, 4), nullable=False),
        sa.Column('quantity', sa.Numeric(15, 4), nullable=False),
        sa.Column('unit', sa.String(50), nullable=True),
        sa.Column('store_id', sa.String(36), nullable=True),
        sa.Column('store_name', sa.String(255), nullable=True),
        sa.Column('tax_rate_code', sa.String(16), nullable=False),
        sa.Column('tax_rate', sa.Numeric(5, 2), nullable=False),
        sa.Column('price_includes_tax', sa.Boolean(), nullable=False),
        sa.Column('base_price', sa.Numeric(15, 4), nullable=False),
        sa.Column('tax_amount', sa.Numeric(15, 2), nullable=False, server_default='0'),
    )
    op.create_index('ix_shopping_items_session_id', 'shopping_items', ['session_id'])


def downgrade() -> None:
    """Elimina las tablas del importador."""
    op.drop_index('ix_shopping_items_session_id', table_name='shopping_items')
    op.drop_table('shopping_items')
    op.drop_table('shopping_sessions')
    op.drop_index('ix_imported_invoice_items_imported_invoice_id', table_name='imported_invoice_items')
    op.drop_table('imported_invoice_items')
    op.drop_index('ix_imported_invoices_shopping_session_id', table_name='imported_invoices')
    op.drop_index('ix_imported_invoices_emitter_ruc', table_name='imported_invoices')
    op.drop_index('ix_imported_invoices_cufe', table_name='imported_invoices')
    op.drop_table('imported_invoices')
    op.drop_index('ix_stores_ruc', table_name='stores')
    op.drop_table('stores')
