"""Recurring series: tasks, recurrence rules and instances

Revision ID: 001
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001'
down_revision = None  # This is the first migration
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('task',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('plan_id', sa.String(length=64), nullable=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), server_default='pending', nullable=False),
        sa.Column('priority', sa.String(length=20), server_default='medium', nullable=False),
        sa.Column('effort', sa.String(length=20), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('due_time', sa.Time(), nullable=True),
        sa.Column('reminder_enabled', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('sort_order', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('is_recurring', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('recurring_master_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['recurring_master_id'], ['task.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_task_plan_id', 'task', ['plan_id'])
    op.create_index('ix_task_due_date', 'task', ['due_date'])
    op.create_index('ix_task_is_recurring', 'task', ['is_recurring'])
    op.create_index('ix_task_recurring_master_id', 'task', ['recurring_master_id'])

    op.create_table('task_tag',
        sa.Column('task_id', sa.Integer(), nullable=False),
        sa.Column('tag_id', sa.String(length=64), nullable=False),
        sa.ForeignKeyConstraint(['task_id'], ['task.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('task_id', 'tag_id')
    )

    op.create_table('task_assignee',
        sa.Column('task_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('assigned_by', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['task_id'], ['task.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('task_id', 'user_id')
    )

    op.create_table('recurrence_rule',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('task_id', sa.Integer(), nullable=False),
        sa.Column('rrule', sa.Text(), nullable=False),
        sa.Column('frequency', sa.String(length=20), nullable=False),
        sa.Column('interval_value', sa.Integer(), server_default='1', nullable=False),
        sa.Column('days_of_week', sa.JSON(), nullable=True),
        sa.Column('day_of_month', sa.Integer(), nullable=True),
        sa.Column('week_of_month', sa.Integer(), nullable=True),
        sa.Column('day_of_week_for_month', sa.Integer(), nullable=True),
        sa.Column('month_of_year', sa.Integer(), nullable=True),
        sa.Column('end_type', sa.String(length=10), server_default='never', nullable=False),
        sa.Column('end_count', sa.Integer(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('timezone', sa.String(length=64), server_default='UTC', nullable=False),
        sa.Column('generation_limit', sa.Integer(), server_default='20', nullable=False),
        sa.Column('last_generated_date', sa.Date(), nullable=True),
        sa.Column('is_paused', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['task_id'], ['task.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('task_id')
    )
    op.create_index('ix_recurrence_rule_last_generated_date', 'recurrence_rule', ['last_generated_date'])

    # Tombstones keep their row after the task is removed, so task_id is SET NULL
    op.create_table('recurrence_instance',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('rule_id', sa.Integer(), nullable=False),
        sa.Column('task_id', sa.Integer(), nullable=True),
        sa.Column('original_date', sa.Date(), nullable=False),
        sa.Column('is_exception', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['rule_id'], ['recurrence_rule.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['task_id'], ['task.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('rule_id', 'original_date', name='uq_instance_rule_date')
    )
    op.create_index('ix_recurrence_instance_rule_id', 'recurrence_instance', ['rule_id'])
    op.create_index('ix_recurrence_instance_task_id', 'recurrence_instance', ['task_id'])
    op.create_index('ix_recurrence_instance_original_date', 'recurrence_instance', ['original_date'])


def downgrade():
    op.drop_index('ix_recurrence_instance_original_date', table_name='recurrence_instance')
    op.drop_index('ix_recurrence_instance_task_id', table_name='recurrence_instance')
    op.drop_index('ix_recurrence_instance_rule_id', table_name='recurrence_instance')
    op.drop_table('recurrence_instance')

    op.drop_index('ix_recurrence_rule_last_generated_date', table_name='recurrence_rule')
    op.drop_table('recurrence_rule')

    op.drop_table('task_assignee')
    op.drop_table('task_tag')

    op.drop_index('ix_task_recurring_master_id', table_name='task')
    op.drop_index('ix_task_is_recurring', table_name='task')
    op.drop_index('ix_task_due_date', table_name='task')
    op.drop_index('ix_task_plan_id', table_name='task')
    op.drop_table('task')
