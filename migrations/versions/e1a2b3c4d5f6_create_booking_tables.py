"""create booking tables with no-overlap guard

Revision ID: e1a2b3c4d5f6
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'e1a2b3c4d5f6'
down_revision = None
branch_labels = None
depends_on = None


PG_NO_OVERLAP = """
ALTER TABLE bookings ADD CONSTRAINT bookings_no_overlap
EXCLUDE USING gist (
    resource_id WITH =,
    tsrange(start_time, end_time, '[)') WITH &&
) WHERE (status <> 'cancelled' AND start_time IS NOT NULL AND end_time IS NOT NULL)
"""

SQLITE_TRIGGER = """
CREATE TRIGGER bookings_no_overlap_{event}
BEFORE {clause} ON bookings
WHEN NEW.status <> 'cancelled' AND NEW.start_time IS NOT NULL AND NEW.end_time IS NOT NULL
BEGIN
    SELECT RAISE(ABORT, 'bookings_no_overlap')
    WHERE EXISTS (
        SELECT 1 FROM bookings
        WHERE {self_filter}resource_id = NEW.resource_id
          AND status <> 'cancelled'
          AND start_time IS NOT NULL AND end_time IS NOT NULL
          AND start_time < NEW.end_time
          AND end_time > NEW.start_time
    );
END
"""


def upgrade():
    op.create_table(
        'resources',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('open_hour', sa.Integer(), nullable=True),
        sa.Column('close_hour', sa.Integer(), nullable=True),
        sa.Column('interval_minutes', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_resources_name'),
    )
    op.create_table(
        'services',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_services_name'),
        sa.CheckConstraint('duration_minutes > 0', name='ck_services_duration_positive'),
    )
    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('resource_id', sa.Integer(), sa.ForeignKey('resources.id'), nullable=False),
        sa.Column('service_id', sa.Integer(), sa.ForeignKey('services.id'), nullable=True),
        sa.Column('service_name', sa.String(length=120), nullable=True),
        sa.Column('client_name', sa.String(length=120), nullable=False),
        sa.Column('client_phone', sa.String(length=40), nullable=True),
        sa.Column('client_email', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('time', sa.String(length=5), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=True),
        sa.Column('start_time', sa.DateTime(), nullable=True),
        sa.Column('end_time', sa.DateTime(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled')",
            name='ck_bookings_status',
        ),
        sa.CheckConstraint(
            'end_time IS NULL OR start_time IS NULL OR end_time > start_time',
            name='ck_bookings_range',
        ),
    )
    op.create_index('ix_bookings_resource_id', 'bookings', ['resource_id'])
    op.create_index('ix_bookings_date', 'bookings', ['date'])
    op.create_index('ix_bookings_resource_date', 'bookings', ['resource_id', 'date'])

    op.create_table(
        'time_blocks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('resource_id', sa.Integer(), sa.ForeignKey('resources.id'), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=False),
        sa.Column('reason', sa.String(length=120), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('end_time > start_time', name='ck_time_blocks_range'),
    )
    op.create_index('ix_time_blocks_resource_id', 'time_blocks', ['resource_id'])
    op.create_index('ix_time_blocks_date', 'time_blocks', ['date'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('actor', sa.String(length=120), nullable=True),
        sa.Column('action', sa.String(length=80), nullable=False),
        sa.Column('entity', sa.String(length=80), nullable=True),
        sa.Column('entity_id', sa.String(length=80), nullable=True),
        sa.Column('ip', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('metadata_json', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_timestamp', 'audit_logs', ['timestamp'])

    # The no-overlap guard is the only thing standing between two concurrent bookings
    dialect = op.get_bind().dialect.name
    if dialect == 'postgresql':
        op.execute('CREATE EXTENSION IF NOT EXISTS btree_gist')
        op.execute(PG_NO_OVERLAP)
    elif dialect == 'sqlite':
        op.execute(SQLITE_TRIGGER.format(event='insert', clause='INSERT', self_filter=''))
        op.execute(SQLITE_TRIGGER.format(
            event='update',
            clause='UPDATE OF resource_id, start_time, end_time, status',
            self_filter='id <> NEW.id AND ',
        ))


def downgrade():
    dialect = op.get_bind().dialect.name
    if dialect == 'sqlite':
        op.execute('DROP TRIGGER IF EXISTS bookings_no_overlap_update')
        op.execute('DROP TRIGGER IF EXISTS bookings_no_overlap_insert')

    op.drop_index('ix_audit_logs_timestamp', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index('ix_time_blocks_date', table_name='time_blocks')
    op.drop_index('ix_time_blocks_resource_id', table_name='time_blocks')
    op.drop_table('time_blocks')
    op.drop_index('ix_bookings_resource_date', table_name='bookings')
    op.drop_index('ix_bookings_date', table_name='bookings')
    op.drop_index('ix_bookings_resource_id', table_name='bookings')
    op.drop_table('bookings')
    op.drop_table('services')
    op.drop_table('resources')
