"""Create applications and file_uploads tables

Revision ID: c4d5e6f7a8b9
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'c4d5e6f7a8b9'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'applications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('full_name', sa.String(length=100), nullable=False),
        sa.Column('age', sa.Integer(), nullable=False),
        sa.Column('gender', sa.String(length=32), nullable=False),
        sa.Column('mobile_number', sa.String(length=10), nullable=False),
        sa.Column('email', sa.String(length=254), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=False),
        sa.Column('state', sa.String(length=100), nullable=False),
        sa.Column('highest_qualification', sa.String(length=200), nullable=False),
        sa.Column('specialization', sa.String(length=200), nullable=False),
        sa.Column('college_name', sa.String(length=255), nullable=False),
        sa.Column('year_of_passing', sa.Integer(), nullable=False),
        sa.Column('career_gap', sa.Float(), nullable=False),
        sa.Column('role_applied_for', sa.String(length=200), nullable=False),
        sa.Column('primary_skill_set', sa.Text(), nullable=False),
        sa.Column('total_experience', sa.String(length=100), nullable=False),
        sa.Column('linkedin_url', sa.String(length=2048), nullable=False),
        sa.Column('github_url', sa.String(length=2048), nullable=False),
        sa.Column('photograph_url', sa.String(length=2048), nullable=False),
        sa.Column('resume_url', sa.String(length=2048), nullable=False),
        sa.Column('availability', sa.String(length=200), nullable=False),
        sa.Column('declaration_accepted', sa.Boolean(), nullable=False),
        sa.Column(
            'status',
            sa.Enum('pending', 'reviewed', 'shortlisted', 'rejected', name='application_status'),
            nullable=False,
        ),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('age >= 18 AND age <= 100', name='ck_applications_age_range'),
        sa.CheckConstraint('career_gap >= 0', name='ck_applications_career_gap_non_negative'),
        sa.CheckConstraint('year_of_passing >= 1950', name='ck_applications_year_of_passing_min'),
    )
    op.create_index(op.f('ix_applications_id'), 'applications', ['id'], unique=False)
    op.create_index(op.f('ix_applications_email'), 'applications', ['email'], unique=True)
    op.create_index(op.f('ix_applications_role_applied_for'), 'applications', ['role_applied_for'], unique=False)
    op.create_index(op.f('ix_applications_status'), 'applications', ['status'], unique=False)
    op.create_index(op.f('ix_applications_submitted_at'), 'applications', ['submitted_at'], unique=False)

    op.create_table(
        'file_uploads',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('storage_url', sa.String(length=2048), nullable=False),
        sa.Column('storage_object_id', sa.String(length=512), nullable=False),
        sa.Column('storage_resource_kind', sa.String(length=16), nullable=False),
        sa.Column('original_filename', sa.String(length=255), nullable=False),
        sa.Column('sanitized_filename', sa.String(length=255), nullable=True),
        sa.Column('file_type', sa.String(length=64), nullable=False),
        sa.Column('file_category', sa.Enum('image', 'pdf', 'document', name='file_category'), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('file_size_formatted', sa.String(length=32), nullable=True),
        sa.Column('uploaded_by', sa.String(length=254), nullable=True),
        sa.Column('upload_purpose', sa.String(length=100), nullable=False),
        sa.Column('related_entity_id', sa.Integer(), nullable=True),
        sa.Column('related_entity_type', sa.String(length=50), nullable=True),
        sa.Column('upload_source', sa.Enum('web', 'mobile', 'api', name='upload_source'), nullable=False),
        sa.Column('upload_ip_address', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('status', sa.Enum('active', 'deleted', 'archived', name='file_status'), nullable=False),
        sa.Column('validation_passed', sa.Boolean(), nullable=False),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('storage_object_id'),
        sa.CheckConstraint(
            'file_size >= 1 AND file_size <= 10485760',
            name='ck_file_uploads_file_size_range',
        ),
    )
    op.create_index(op.f('ix_file_uploads_id'), 'file_uploads', ['id'], unique=False)
    op.create_index(op.f('ix_file_uploads_uploaded_at'), 'file_uploads', ['uploaded_at'], unique=False)
    op.create_index('ix_file_uploads_uploaded_by_uploaded_at', 'file_uploads', ['uploaded_by', 'uploaded_at'], unique=False)
    op.create_index('ix_file_uploads_status_uploaded_at', 'file_uploads', ['status', 'uploaded_at'], unique=False)
    op.create_index('ix_file_uploads_related_entity', 'file_uploads', ['related_entity_id', 'related_entity_type'], unique=False)
    op.create_index('ix_file_uploads_category_uploaded_at', 'file_uploads', ['file_category', 'uploaded_at'], unique=False)


def downgrade():
    op.drop_index('ix_file_uploads_category_uploaded_at', table_name='file_uploads')
    op.drop_index('ix_file_uploads_related_entity', table_name='file_uploads')
    op.drop_index('ix_file_uploads_status_uploaded_at', table_name='file_uploads')
    op.drop_index('ix_file_uploads_uploaded_by_uploaded_at', table_name='file_uploads')
    op.drop_index(op.f('ix_file_uploads_uploaded_at'), table_name='file_uploads')
    op.drop_index(op.f('ix_file_uploads_id'), table_name='file_uploads')
    op.drop_table('file_uploads')

    op.drop_index(op.f('ix_applications_submitted_at'), table_name='applications')
    op.drop_index(op.f('ix_applications_status'), table_name='applications')
    op.drop_index(op.f('ix_applications_role_applied_for'), table_name='applications')
    op.drop_index(op.f('ix_applications_email'), table_name='applications')
    op.drop_index(op.f('ix_applications_id'), table_name='applications')
    op.drop_table('applications')

    # Enum types are not dropped with their tables on PostgreSQL
    sa.Enum(name='upload_source').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='file_status').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='file_category').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='application_status').drop(op.get_bind(), checkfirst=True)
