"""registry tables"""

revision = "0001"
down_revision = None

from alembic import op
import sqlalchemy as sa


def upgrade():
    op.create_table(
        'DocType',
        sa.Column('name', sa.String(255), primary_key=True),
        sa.Column('module', sa.String(255), nullable=False),
        sa.Column('isSingle', sa.Boolean(), nullable=False),
        sa.Column('isChild', sa.Boolean(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('creation', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('modified', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_table(
        'DocField',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('docTypeName', sa.String(255), sa.ForeignKey('DocType.name', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('label', sa.String(255), nullable=True),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('required', sa.Boolean(), nullable=False),
        sa.Column('unique', sa.Boolean(), nullable=False),
        sa.Column('hidden', sa.Boolean(), nullable=False),
        sa.Column('readonly', sa.Boolean(), nullable=False),
        sa.Column('options', sa.Text(), nullable=True),
        sa.Column('target', sa.String(255), nullable=True),
        sa.Column('idx', sa.Integer(), nullable=False),
        sa.UniqueConstraint('docTypeName', 'name', name='uq_docfield_doctype_name'),
    )
    op.create_table(
        'DocPerm',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('docTypeName', sa.String(255), sa.ForeignKey('DocType.name', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(255), nullable=False),
        sa.Column('read', sa.Boolean(), nullable=False),
        sa.Column('write', sa.Boolean(), nullable=False),
        sa.Column('create', sa.Boolean(), nullable=False),
        sa.Column('delete', sa.Boolean(), nullable=False),
        sa.Column('submit', sa.Boolean(), nullable=False),
        sa.Column('cancel', sa.Boolean(), nullable=False),
        sa.Column('amend', sa.Boolean(), nullable=False),
        sa.Column('report', sa.Boolean(), nullable=False),
        sa.Column('idx', sa.Integer(), nullable=False),
    )
    op.create_table(
        'AuditLog',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tenantId', sa.String(255), nullable=False),
        sa.Column('userId', sa.String(255), nullable=True),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('docType', sa.String(255), nullable=False),
        sa.Column('docName', sa.String(255), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_table(
        'Tenant',
        sa.Column('id', sa.String(255), primary_key=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('creation', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )


def downgrade():
    op.drop_table('Tenant')
    op.drop_table('AuditLog')
    op.drop_table('DocPerm')
    op.drop_table('DocField')
    op.drop_table('DocType')
