"""initial fulfillment schema

Revision ID: b7e1c2d3f4a5
Revises:
Create Date: 2026-10-17 00:00:00.000000

Creates the order fulfillment schema:
- users: actors with their marketplace role
- products: catalog with the authoritative available_quantity counter
- carts / cart_lines: pending selections, linked to their order on checkout
- orders / order_lines: one order per checkout, price snapshots and serials
- serial_allocations: append-only ledger of numbered units
- label_sequences: atomic counters for order labels
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b7e1c2d3f4a5'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint("role IS NULL OR role IN ('buyer', 'seller', 'admin')", name='ck_users_role'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    # ============================================================================
    # products: available_quantity must equal the unconsumed serial count
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('variant', sa.String(length=64), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('available_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('available_quantity >= 0', name='ck_products_available_nonneg'),
        sa.CheckConstraint('price_cents >= 0', name='ck_products_price_nonneg'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_code', 'products', ['code'], unique=True)
    op.create_index('ix_products_name_variant', 'products', ['name', 'variant'])

    op.create_table(
        'carts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_user_id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=8), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='open'),
        # FK to orders added below, once orders exists
        sa.Column('order_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('checked_out_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("kind IN ('buy', 'sell')", name='ck_carts_kind'),
        sa.ForeignKeyConstraint(['owner_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_carts_owner_user_id', 'carts', ['owner_user_id'])
    op.create_index('ix_carts_status', 'carts', ['status'])
    op.create_index('ix_carts_owner_kind_status', 'carts', ['owner_user_id', 'kind', 'status'])

    op.create_table(
        'cart_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cart_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('quantity > 0', name='ck_cart_lines_quantity_pos'),
        sa.ForeignKeyConstraint(['cart_id'], ['carts.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('cart_id', 'product_id', name='uq_cart_lines_cart_product'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_cart_lines_cart_id', 'cart_lines', ['cart_id'])
    op.create_index('ix_cart_lines_product_id', 'cart_lines', ['product_id'])

    # ============================================================================
    # orders: open_quantity is drained by FIFO matching
    # ============================================================================
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_user_id', sa.Integer(), nullable=False),
        sa.Column('serial_label', sa.String(length=64), nullable=False),
        sa.Column('kind', sa.String(length=8), nullable=False),
        sa.Column('cart_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('open_quantity', sa.Integer(), nullable=False),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=8), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint("kind IN ('buy', 'sell')", name='ck_orders_kind'),
        sa.CheckConstraint("payment_method IN ('cash', 'upi')", name='ck_orders_payment_method'),
        sa.CheckConstraint("status IN ('pending', 'completed', 'cancelled')", name='ck_orders_status'),
        sa.CheckConstraint('open_quantity >= 0', name='ck_orders_open_nonneg'),
        sa.ForeignKeyConstraint(['owner_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['cart_id'], ['carts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('serial_label'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_orders_owner_user_id', 'orders', ['owner_user_id'])
    op.create_index('ix_orders_cart_id', 'orders', ['cart_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_kind_status_created', 'orders', ['kind', 'status', 'created_at'])

    with op.batch_alter_table('carts') as batch_op:
        batch_op.create_foreign_key('fk_carts_order_id', 'orders', ['order_id'], ['id'])

    op.create_table(
        'order_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('open_quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.Column('serial_numbers', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('quantity > 0', name='ck_order_lines_quantity_pos'),
        sa.CheckConstraint('open_quantity >= 0', name='ck_order_lines_open_nonneg'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', 'product_id', name='uq_order_lines_order_product'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_order_lines_order_id', 'order_lines', ['order_id'])
    op.create_index('ix_order_lines_product_open', 'order_lines', ['product_id', 'open_quantity'])

    # ============================================================================
    # serial_allocations: append-only, never deleted or renumbered
    # ============================================================================
    op.create_table(
        'serial_allocations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_code', sa.String(length=32), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('serial_number', sa.String(length=64), nullable=False),
        sa.Column('sell_order_id', sa.Integer(), nullable=True),
        sa.Column('buy_order_id', sa.Integer(), nullable=True),
        sa.Column('minted_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('allocated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['sell_order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['buy_order_id'], ['orders.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_code', 'serial_number', name='uq_serials_code_number'),
        sa.UniqueConstraint('product_code', 'sequence', name='uq_serials_code_sequence'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_serial_allocations_product_id', 'serial_allocations', ['product_id'])
    op.create_index('ix_serial_allocations_sell_order_id', 'serial_allocations', ['sell_order_id'])
    op.create_index('ix_serial_allocations_buy_order_id', 'serial_allocations', ['buy_order_id'])
    op.create_index('ix_serials_product_buy_seq', 'serial_allocations', ['product_id', 'buy_order_id', 'sequence'])

    op.create_table(
        'label_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('namespace', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('namespace'),
        sqlite_autoincrement=True
    )


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('label_sequences')
    op.drop_table('serial_allocations')
    op.drop_table('order_lines')
    with op.batch_alter_table('carts') as batch_op:
        batch_op.drop_constraint('fk_carts_order_id', type_='foreignkey')
    op.drop_table('orders')
    op.drop_table('cart_lines')
    op.drop_table('carts')
    op.drop_table('products')
    op.drop_table('users')
