"""Outstanding payments view: one row per customer who owes money

Revision ID: 0002_outstanding_view
Revises: 0001_initial
Create Date: 2026-10-19

Read-only convenience for ad hoc SQL and reporting tools. The application
computes the same aggregation in OutstandingAggregator, where aging is
measured against an injectable clock.
"""
from alembic import op


# revision identifiers, used by Alembic.
revision = '0002_outstanding_view'
down_revision = '0001_initial'
branch_labels = None
depends_on = None


def upgrade():
    op.execute("""
        CREATE VIEW outstanding_payments_view AS
        SELECT
            c.id AS customer_id,
            c.name AS customer_name,
            c.phone AS phone,
            c.credit_limit_cents AS credit_limit_cents,
            c.payment_terms AS payment_terms,
            SUM(s.outstanding_amount_cents) AS total_outstanding_cents,
            COUNT(s.id) AS outstanding_sales_count,
            MIN(s.created_at) AS oldest_sale_date,
            MAX(s.created_at) AS latest_sale_date
        FROM customers c
        JOIN sales s ON s.customer_id = c.id
        WHERE s.outstanding_amount_cents > 0
        GROUP BY c.id, c.name, c.phone, c.credit_limit_cents, c.payment_terms
    """)


def downgrade():
    op.execute("DROP VIEW IF EXISTS outstanding_payments_view")
