"""Initial schema: catalog, customers, orders, bills and payment ledger

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. CATALOG
    # ==========================================================================
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(16), nullable=False),
        sa.Column("subcategory", sa.String(64), nullable=False, server_default=""),
        sa.Column("base_price_paise", sa.Integer(), nullable=False),
        sa.Column("sale_price_paise", sa.Integer(), nullable=True),
        sa.Column("is_on_sale", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("gst_rate", sa.Integer(), nullable=False),
        sa.Column("is_tax_inclusive", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("stock_qty", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("low_stock_threshold", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("stock_qty >= 0", name="ck_products_stock_non_negative"),
        sa.CheckConstraint("base_price_paise > 0", name="ck_products_base_price_positive"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sku", name="uq_products_sku"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.create_index("ix_products_category_active", ["category", "is_active"], unique=False)

    # ==========================================================================
    # 2. CUSTOMERS AND DOCUMENT SEQUENCES
    # ==========================================================================
    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("phone", sa.String(10), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.String(512), nullable=True),
        sa.Column("gender", sa.String(16), nullable=True),
        sa.Column("age_group", sa.String(32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("phone", name="uq_customers_phone"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "document_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("document_type", sa.String(32), nullable=False),
        sa.Column("period_key", sa.String(16), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("document_type", "period_key", name="uq_doc_sequences_type_period"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("document_sequences", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_document_sequences_document_type"), ["document_type"], unique=False)

    # ==========================================================================
    # 3. BILLS (immutable invoice) AND PAYMENT LEDGER
    # ==========================================================================
    op.create_table(
        "bills",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bill_number", sa.String(32), nullable=False),
        sa.Column("bill_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("order_type", sa.String(16), nullable=False),
        sa.Column("employee_id", sa.String(64), nullable=False),
        sa.Column("employee_name", sa.String(255), nullable=False),
        sa.Column("exhibition_id", sa.String(64), nullable=True),
        sa.Column("seller_business_name", sa.String(255), nullable=False),
        sa.Column("seller_gstin", sa.String(32), nullable=False),
        sa.Column("seller_address", sa.String(512), nullable=False, server_default=""),
        sa.Column("seller_state_code", sa.String(8), nullable=False, server_default=""),
        sa.Column("seller_phone", sa.String(32), nullable=False, server_default=""),
        sa.Column("seller_email", sa.String(255), nullable=False, server_default=""),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("customer_phone", sa.String(10), nullable=False),
        sa.Column("customer_address", sa.String(512), nullable=False, server_default=""),
        sa.Column("total_quantity", sa.Integer(), nullable=False),
        sa.Column("subtotal_paise", sa.Integer(), nullable=False),
        sa.Column("total_discount_paise", sa.Integer(), nullable=False),
        sa.Column("total_taxable_paise", sa.Integer(), nullable=False),
        sa.Column("total_cgst_paise", sa.Integer(), nullable=False),
        sa.Column("total_sgst_paise", sa.Integer(), nullable=False),
        sa.Column("total_tax_paise", sa.Integer(), nullable=False),
        sa.Column("grand_total_paise", sa.Integer(), nullable=False),
        sa.Column("rounded_off_paise", sa.Integer(), nullable=False),
        sa.Column("payable_paise", sa.Integer(), nullable=False),
        sa.Column("payment_mode", sa.String(16), nullable=False, server_default="CASH"),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("bill_number", name="uq_bills_bill_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("bills", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_bills_order_id"), ["order_id"], unique=False)
        batch_op.create_index("ix_bills_employee_generated", ["employee_id", "generated_at"], unique=False)

    op.create_table(
        "bill_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bill_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=True),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(16), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_paise", sa.Integer(), nullable=False),
        sa.Column("discount_paise", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("taxable_paise", sa.Integer(), nullable=False),
        sa.Column("gst_rate", sa.Integer(), nullable=False),
        sa.Column("cgst_paise", sa.Integer(), nullable=False),
        sa.Column("sgst_paise", sa.Integer(), nullable=False),
        sa.Column("line_total_paise", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["bill_id"], ["bills.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("bill_id", "position", name="uq_bill_lines_bill_position"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("bill_lines", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_bill_lines_bill_id"), ["bill_id"], unique=False)

    op.create_table(
        "bill_payment_states",
        sa.Column("bill_id", sa.Integer(), nullable=False),
        sa.Column("payable_paise", sa.Integer(), nullable=False),
        sa.Column("paid_paise", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("due_paise", sa.Integer(), nullable=False),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default="UNPAID"),
        sa.Column("locked", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["bill_id"], ["bills.id"]),
        sa.PrimaryKeyConstraint("bill_id"),
    )
    with op.batch_alter_table("bill_payment_states", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_bill_payment_states_payment_status"), ["payment_status"], unique=False)

    op.create_table(
        "bill_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bill_id", sa.Integer(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("mode", sa.String(16), nullable=False),
        sa.Column("amount_paise", sa.Integer(), nullable=False),
        sa.Column("reference_id", sa.String(128), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("recorded_by", sa.String(64), nullable=True),
        sa.ForeignKeyConstraint(["bill_id"], ["bill_payment_states.bill_id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("bill_id", "sequence", name="uq_bill_payments_bill_sequence"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("bill_payments", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_bill_payments_bill_id"), ["bill_id"], unique=False)

    # ==========================================================================
    # 4. ORDERS
    # ==========================================================================
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("customer_phone", sa.String(10), nullable=False),
        sa.Column("exhibition_id", sa.String(64), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=False),
        sa.Column("delivery_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("employee_discount_percent", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("subtotal_paise", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_discount_paise", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_taxable_paise", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_cgst_paise", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_sgst_paise", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_tax_paise", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("grand_total_paise", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("payable_paise", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("bill_id", sa.Integer(), nullable=True),
        sa.Column("legacy_source_ids", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("converted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["bill_id"], ["bills.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("orders", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_orders_status"), ["status"], unique=False)
        batch_op.create_index(batch_op.f("ix_orders_customer_phone"), ["customer_phone"], unique=False)
        batch_op.create_index(batch_op.f("ix_orders_exhibition_id"), ["exhibition_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_orders_bill_id"), ["bill_id"], unique=False)
        batch_op.create_index("ix_orders_type_status", ["type", "status"], unique=False)
        batch_op.create_index("ix_orders_created_by_created", ["created_by", "created_at"], unique=False)

    op.create_table(
        "order_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=True),
        sa.Column("legacy_product_ref", sa.String(64), nullable=True),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("category", sa.String(16), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_paise", sa.Integer(), nullable=False),
        sa.Column("line_discount_paise", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("line_tax_paise", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("line_total_paise", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_id", "position", name="uq_order_lines_order_position"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("order_lines", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_order_lines_order_id"), ["order_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_order_lines_product_id"), ["product_id"], unique=False)


def downgrade():
    op.drop_table("order_lines")
    op.drop_table("orders")
    op.drop_table("bill_payments")
    op.drop_table("bill_payment_states")
    op.drop_table("bill_lines")
    op.drop_table("bills")
    op.drop_table("document_sequences")
    op.drop_table("customers")
    op.drop_table("products")
