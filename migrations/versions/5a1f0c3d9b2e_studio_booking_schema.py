"""studio booking schema

Revision ID: 5a1f0c3d9b2e
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

from models.reservation import SQLITE_OVERLAP_TRIGGERS, POSTGRES_OVERLAP_CONSTRAINTS


# revision identifiers, used by Alembic.
revision = '5a1f0c3d9b2e'
down_revision = None
branch_labels = None
depends_on = None


def _master_table(name, name_length, with_customer=False):
    columns = [
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
    ]
    if with_customer:
        columns.append(sa.Column('customer_id', sa.Integer(), nullable=False))
    columns += [
        sa.Column('name', sa.String(length=name_length), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
    ]
    if with_customer:
        columns.append(sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ))
    op.create_table(name, *columns, sa.PrimaryKeyConstraint('id'))
    with op.batch_alter_table(name, schema=None) as batch_op:
        batch_op.create_index(batch_op.f(f'ix_{name}_company_id'), ['company_id'], unique=False)
        if with_customer:
            batch_op.create_index(batch_op.f(f'ix_{name}_customer_id'), ['customer_id'], unique=False)


def upgrade():
    op.create_table(
        'companies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=160), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=80), nullable=False),
        sa.Column('full_name', sa.String(length=120), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_users_company_id'), ['company_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_users_username'), ['username'], unique=True)

    op.create_table(
        'user_module_access',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('module', sa.String(length=60), nullable=False),
        sa.Column('section', sa.String(length=60), nullable=False),
        sa.Column('can_view', sa.Boolean(), nullable=False),
        sa.Column('can_create', sa.Boolean(), nullable=False),
        sa.Column('can_edit', sa.Boolean(), nullable=False),
        sa.Column('can_delete', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('user_module_access', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_user_module_access_user_id'), ['user_id'], unique=False)

    op.create_table(
        'sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_seen_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('revoked', sa.Boolean(), nullable=False),
        sa.Column('ip', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('sessions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sessions_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sessions_token_hash'), ['token_hash'], unique=True)

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=80), nullable=False),
        sa.Column('entity', sa.String(length=80), nullable=True),
        sa.Column('entity_id', sa.String(length=80), nullable=True),
        sa.Column('ip', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('metadata_json', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('audit_logs', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_audit_logs_company_id'), ['company_id'], unique=False)

    _master_table('customers', 160)
    _master_table('projects', 160, with_customer=True)
    _master_table('rooms', 120)
    _master_table('editors', 120)

    op.create_table(
        'reservations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('room_id', sa.Integer(), nullable=False),
        sa.Column('editor_id', sa.Integer(), nullable=True),
        sa.Column('booking_date', sa.Date(), nullable=False),
        sa.Column('from_minute', sa.Integer(), nullable=False),
        sa.Column('to_minute', sa.Integer(), nullable=False),
        sa.Column('actual_from_minute', sa.Integer(), nullable=True),
        sa.Column('actual_to_minute', sa.Integer(), nullable=True),
        sa.Column('break_minutes', sa.Integer(), nullable=False),
        sa.Column('total_minutes', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('cancel_reason', sa.String(length=255), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('from_minute >= 0 AND to_minute <= 1440 AND from_minute < to_minute',
                           name='ck_reservations_time_range'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ),
        sa.ForeignKeyConstraint(['room_id'], ['rooms.id'], ),
        sa.ForeignKeyConstraint(['editor_id'], ['editors.id'], ),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('reservations', schema=None) as batch_op:
        for column in ('company_id', 'customer_id', 'project_id', 'room_id', 'editor_id', 'booking_date'):
            batch_op.create_index(batch_op.f(f'ix_reservations_{column}'), [column], unique=False)
        batch_op.create_index('ix_reservations_room_day', ['company_id', 'room_id', 'booking_date'], unique=False)
        batch_op.create_index('ix_reservations_editor_day', ['company_id', 'editor_id', 'booking_date'], unique=False)

    dialect = op.get_bind().dialect.name
    if dialect == 'sqlite':
        for statement in SQLITE_OVERLAP_TRIGGERS:
            op.execute(statement)
    elif dialect == 'postgresql':
        for statement in POSTGRES_OVERLAP_CONSTRAINTS:
            op.execute(statement)

    op.create_table(
        'reservation_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('reservation_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=40), nullable=False),
        sa.Column('changes', sa.Text(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('reservation_logs', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_reservation_logs_company_id'), ['company_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_reservation_logs_reservation_id'), ['reservation_id'], unique=False)

    op.create_table(
        'chalan_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('scope_key', sa.String(length=40), nullable=False),
        sa.Column('last_value', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('scope_key')
    )

    op.create_table(
        'chalans',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('chalan_number', sa.String(length=40), nullable=False),
        sa.Column('reservation_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('room_id', sa.Integer(), nullable=True),
        sa.Column('editor_id', sa.Integer(), nullable=True),
        sa.Column('chalan_date', sa.Date(), nullable=False),
        sa.Column('from_minute', sa.Integer(), nullable=True),
        sa.Column('to_minute', sa.Integer(), nullable=True),
        sa.Column('actual_from_minute', sa.Integer(), nullable=True),
        sa.Column('actual_to_minute', sa.Integer(), nullable=True),
        sa.Column('break_minutes', sa.Integer(), nullable=False),
        sa.Column('total_minutes', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('total_amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('is_cancelled', sa.Boolean(), nullable=False),
        sa.Column('cancel_reason', sa.String(length=255), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('revision_count', sa.Integer(), nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.ForeignKeyConstraint(['reservation_id'], ['reservations.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ),
        sa.ForeignKeyConstraint(['room_id'], ['rooms.id'], ),
        sa.ForeignKeyConstraint(['editor_id'], ['editors.id'], ),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'chalan_number', name='uq_chalans_company_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('chalans', schema=None) as batch_op:
        for column in ('company_id', 'reservation_id', 'customer_id', 'project_id'):
            batch_op.create_index(batch_op.f(f'ix_chalans_{column}'), [column], unique=False)
        batch_op.create_index(
            'uq_chalans_active_reservation', ['reservation_id'], unique=True,
            sqlite_where=sa.text('is_cancelled = 0'),
            postgresql_where=sa.text('is_cancelled = false'),
        )

    op.create_table(
        'chalan_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('chalan_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('rate', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.ForeignKeyConstraint(['chalan_id'], ['chalans.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('chalan_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_chalan_items_chalan_id'), ['chalan_id'], unique=False)

    op.create_table(
        'chalan_revisions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('chalan_id', sa.Integer(), nullable=False),
        sa.Column('chalan_number', sa.String(length=40), nullable=False),
        sa.Column('revision_number', sa.Integer(), nullable=False),
        sa.Column('changes', sa.Text(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('chalan_id', 'revision_number', name='uq_chalan_revision_number')
    )
    with op.batch_alter_table('chalan_revisions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_chalan_revisions_company_id'), ['company_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_chalan_revisions_chalan_id'), ['chalan_id'], unique=False)


def downgrade():
    op.drop_table('chalan_revisions')
    op.drop_table('chalan_items')
    op.drop_table('chalans')
    op.drop_table('chalan_sequences')
    op.drop_table('reservation_logs')
    op.drop_table('reservations')
    op.drop_table('editors')
    op.drop_table('rooms')
    op.drop_table('projects')
    op.drop_table('customers')
    op.drop_table('audit_logs')
    op.drop_table('sessions')
    op.drop_table('user_module_access')
    op.drop_table('users')
    op.drop_table('companies')
