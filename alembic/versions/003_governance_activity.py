"""Add approval requests and agent activity tables.

Revision ID: 003_governance_activity
Revises: 002_initial_organization
Create Date: 2026-10-18

- approval_requests: pending human sign-offs with a JSON list of approvals
- agent_execution_logs: one row per agent run
- autonomous_actions: one row per agent decision
"""

from typing import Sequence, Union

from alembic import context, op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSON, UUID

# revision identifiers, used by Alembic.
revision: str = "003_governance_activity"
down_revision: Union[str, None] = "002_initial_organization"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TABLES = ("approval_requests", "agent_execution_logs", "autonomous_actions")


def upgrade() -> None:
    cmd_kwargs = context.get_x_argument(as_dictionary=True)
    schema = cmd_kwargs.get("schema", "org")

    op.create_table(
        "approval_requests",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("organization_id", UUID(as_uuid=True), nullable=False),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("requested_by", sa.String(200), nullable=False),
        sa.Column("payload", JSON(), server_default=sa.text("'{}'::json")),
        sa.Column("value_impact", sa.Float(), nullable=True),
        sa.Column("status", sa.String(20), server_default=sa.text("'pending'"), nullable=False),
        sa.Column("approvals", JSON(), server_default=sa.text("'[]'::json")),
        sa.Column("approver_id", sa.String(200), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("escalated", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("escalate_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        schema="org",
    )
    op.execute(
        f'CREATE INDEX ix_approval_requests_org_status '
        f'ON "{schema}".approval_requests(organization_id, status)'
    )

    op.create_table(
        "agent_execution_logs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("organization_id", UUID(as_uuid=True), nullable=False),
        sa.Column("action_type", sa.String(100), nullable=False),
        sa.Column("reasoning", sa.Text(), nullable=True),
        sa.Column("action_details", JSON(), server_default=sa.text("'{}'::json")),
        sa.Column("result", sa.String(50), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("executed_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        schema="org",
    )

    op.create_table(
        "autonomous_actions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("organization_id", UUID(as_uuid=True), nullable=False),
        sa.Column("agent_type", sa.String(100), nullable=False),
        sa.Column("action_type", sa.String(100), nullable=False),
        sa.Column("target_entity_type", sa.String(100), nullable=True),
        sa.Column("target_entity_id", sa.String(200), nullable=True),
        sa.Column("decision", sa.String(100), nullable=True),
        sa.Column("reasoning", sa.Text(), nullable=True),
        sa.Column("confidence_score", sa.Float(), nullable=True),
        sa.Column("value_impact", sa.Float(), nullable=True),
        sa.Column("requires_approval", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("was_auto_executed", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("execution_result", JSON(), server_default=sa.text("'{}'::json")),
        sa.Column("executed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        schema="org",
    )
    op.execute(
        f'CREATE INDEX ix_autonomous_actions_org_agent '
        f'ON "{schema}".autonomous_actions(organization_id, agent_type)'
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
