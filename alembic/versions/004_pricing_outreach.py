"""Add pricing and outreach tables.

Revision ID: 004_pricing_outreach
Revises: 003_governance_activity
Create Date: 2026-10-18

- pricing_products: tracked products with cost floor and competitor page
- competitor_alerts: large competitor price moves
- prompt_variants: outreach prompts under epsilon-greedy selection
- news_signals: company news awaiting or carrying an outreach draft
"""

from typing import Sequence, Union

from alembic import context, op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic.
revision: str = "004_pricing_outreach"
down_revision: Union[str, None] = "003_governance_activity"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TABLES = ("pricing_products", "competitor_alerts", "prompt_variants", "news_signals")


def upgrade() -> None:
    cmd_kwargs = context.get_x_argument(as_dictionary=True)
    schema = cmd_kwargs.get("schema", "org")

    op.create_table(
        "pricing_products",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("organization_id", UUID(as_uuid=True), nullable=False),
        sa.Column("product_name", sa.String(300), nullable=False),
        sa.Column("my_price", sa.Float(), nullable=False),
        sa.Column("my_cogs", sa.Float(), nullable=True),
        sa.Column("min_margin_percent", sa.Float(), server_default=sa.text("20"), nullable=False),
        sa.Column("competitor_url", sa.String(1000), nullable=True),
        sa.Column("competitor_selector", sa.String(300), nullable=True),
        sa.Column("competitor_price", sa.Float(), nullable=True),
        sa.Column("price_action_taken", sa.String(50), nullable=True),
        sa.Column("last_checked", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("organization_id", "product_name", name="uq_pricing_products_org_name"),
        schema="org",
    )

    op.create_table(
        "competitor_alerts",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("organization_id", UUID(as_uuid=True), nullable=False),
        sa.Column(
            "product_id",
            UUID(as_uuid=True),
            sa.ForeignKey("org.pricing_products.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("alert_type", sa.String(50), nullable=False),
        sa.Column("severity", sa.String(20), server_default=sa.text("'high'"), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("recommendation", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        schema="org",
    )

    op.create_table(
        "prompt_variants",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("organization_id", UUID(as_uuid=True), nullable=False),
        sa.Column("agent_type", sa.String(100), nullable=False),
        sa.Column("variant_tag", sa.String(100), nullable=False),
        sa.Column("prompt_text", sa.Text(), nullable=False),
        sa.Column("uses", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("successes", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "organization_id", "agent_type", "variant_tag", name="uq_prompt_variants_org_tag"
        ),
        schema="org",
    )

    op.create_table(
        "news_signals",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("organization_id", UUID(as_uuid=True), nullable=False),
        sa.Column("company_name", sa.String(300), nullable=False),
        sa.Column("signal_type", sa.String(50), nullable=False),
        sa.Column("headline", sa.Text(), nullable=False),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("source_url", sa.String(1000), nullable=True),
        sa.Column("relevance_score", sa.Float(), nullable=True),
        sa.Column("outreach_status", sa.String(20), server_default=sa.text("'pending'"), nullable=False),
        sa.Column("draft_email", sa.Text(), nullable=True),
        sa.Column(
            "variant_id",
            UUID(as_uuid=True),
            sa.ForeignKey("org.prompt_variants.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        schema="org",
    )
    op.execute(
        f'CREATE INDEX ix_news_signals_org_status '
        f'ON "{schema}".news_signals(organization_id, outreach_status)'
    )

    for table in TABLES:
        op.execute(f'ALTER TABLE "{schema}".{table} ENABLE ROW LEVEL SECURITY')
        op.execute(f'ALTER TABLE "{schema}".{table} FORCE ROW LEVEL SECURITY')
        op.execute(f"""
            CREATE POLICY organization_isolation ON "{schema}".{table}
            FOR ALL
            USING (organization_id::text = current_setting('app.current_organization_id', true))
            WITH CHECK (organization_id::text = current_setting('app.current_organization_id', true))
        """)


def downgrade() -> None:
    cmd_kwargs = context.get_x_argument(as_dictionary=True)
    schema = cmd_kwargs.get("schema", "org")

    for table in reversed(TABLES):
        op.execute(f'DROP POLICY IF EXISTS organization_isolation ON "{schema}".{table}')
        op.drop_table(table, schema="org")
