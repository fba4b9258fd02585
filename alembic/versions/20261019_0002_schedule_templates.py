"""reusable weekly schedule templates

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 00:02:00
"""

from alembic import op
import sqlalchemy as sa


revision = '20261019_0002'
down_revision = '20261019_0001'
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    tables = set(sa.inspect(bind).get_table_names())
    if 'schedule_templates' not in tables:
        op.create_table(
            'schedule_templates',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=120), nullable=False),
            sa.Column('description', sa.Text(), nullable=False, server_default=''),
            sa.Column('created_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_schedule_templates_name', 'schedule_templates', ['name'], unique=True)
    if 'schedule_template_items' not in tables:
        op.create_table(
            'schedule_template_items',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column(
                'template_id',
                sa.Integer(),
                sa.ForeignKey('schedule_templates.id', ondelete='CASCADE'),
                nullable=False,
            ),
            sa.Column('day_of_week', sa.String(length=10), nullable=False),
            sa.Column('start_time', sa.Time(), nullable=False),
            sa.Column('end_time', sa.Time(), nullable=False),
        )
        op.create_index('ix_schedule_template_items_template_id', 'schedule_template_items', ['template_id'])


def downgrade() -> None:
    tables = set(sa.inspect(op.get_bind()).get_table_names())
    if 'schedule_template_items' in tables:
        op.drop_table('schedule_template_items')
    if 'schedule_templates' in tables:
        op.drop_table('schedule_templates')
