"""Bulk upload jobs and row logs

Revision ID: 001_bulk_upload_jobs
Revises:
Create Date: 2026-02-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = '001_bulk_upload_jobs'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Jobs: one row per confirmed upload, counts updated by the worker
    op.create_table(
        'bulk_upload_jobs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('uploaded_by', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('file_url', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('total_rows', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('successful_rows', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('failed_rows', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("status IN ('pending', 'processing', 'completed', 'failed')", name='ck_bulk_upload_jobs_status'),
        sa.CheckConstraint('successful_rows + failed_rows <= total_rows', name='ck_bulk_upload_jobs_counts'),
    )
    op.create_index('idx_bulk_upload_jobs_organization_id', 'bulk_upload_jobs', ['organization_id'])
    op.create_index('idx_bulk_upload_jobs_status', 'bulk_upload_jobs', ['status'])
    op.create_index('idx_bulk_upload_jobs_organization_id_created_at', 'bulk_upload_jobs', ['organization_id', sa.text('created_at DESC')])

    # Row logs: append-only, deleted with their job
    op.create_table(
        'bulk_upload_row_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('job_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('bulk_upload_jobs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('row_number', sa.Integer(), nullable=False),
        sa.Column('raw_data', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='valid'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("status IN ('valid', 'inserted', 'failed')", name='ck_bulk_upload_row_logs_status'),
        sa.CheckConstraint("status <> 'failed' OR error_message IS NOT NULL", name='ck_bulk_upload_row_logs_failed_message'),
    )
    op.create_index('idx_bulk_upload_row_logs_job_id', 'bulk_upload_row_logs', ['job_id'])
    op.create_index('idx_bulk_upload_row_logs_organization_id', 'bulk_upload_row_logs', ['organization_id'])
    op.create_index('idx_bulk_upload_row_logs_status', 'bulk_upload_row_logs', ['status'])
    op.create_index('idx_bulk_upload_row_logs_job_id_row_number', 'bulk_upload_row_logs', ['job_id', 'row_number'], unique=True)

    # Org-scoped email lookups used by the preview validator
    op.execute(
        "CREATE INDEX IF NOT EXISTS idx_employees_org_email "
        "ON employees (organization_id, lower(email))"
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS idx_organization_locations_org_id "
        "ON organization_locations (organization_id)"
    )


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS idx_organization_locations_org_id")
    op.execute("DROP INDEX IF EXISTS idx_employees_org_email")

    op.drop_index('idx_bulk_upload_row_logs_job_id_row_number', table_name='bulk_upload_row_logs')
    op.drop_index('idx_bulk_upload_row_logs_status', table_name='bulk_upload_row_logs')
    op.drop_index('idx_bulk_upload_row_logs_organization_id', table_name='bulk_upload_row_logs')
    op.drop_index('idx_bulk_upload_row_logs_job_id', table_name='bulk_upload_row_logs')
    op.drop_table('bulk_upload_row_logs')

    op.drop_index('idx_bulk_upload_jobs_organization_id_created_at', table_name='bulk_upload_jobs')
    op.drop_index('idx_bulk_upload_jobs_status', table_name='bulk_upload_jobs')
    op.drop_index('idx_bulk_upload_jobs_organization_id', table_name='bulk_upload_jobs')
    op.drop_table('bulk_upload_jobs')
