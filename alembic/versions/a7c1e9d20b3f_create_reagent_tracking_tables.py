"""create_reagent_tracking_tables

Revision ID: a7c1e9d20b3f
Revises:
Create Date: 2026-10-17 09:12:40.318204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'a7c1e9d20b3f'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum('admin', 'manager', 'technician', 'auditor', name='userrole')
unit_measure = sa.Enum('ml', 'L', 'mg', 'g', 'kg', 'unidades', name='unitmeasure')
criticality_level = sa.Enum('low', 'medium', 'high', 'critical', name='criticalitylevel')
lot_status = sa.Enum('active', 'expired', 'disposed', name='lotstatus')
consumption_action = sa.Enum('consume', 'register', 'transfer', 'dispose', 'adjust', name='consumptionaction')
appointment_status = sa.Enum('scheduled', 'in_progress', 'completed', 'cancelled', name='appointmentstatus')
reservation_status = sa.Enum('active', 'fulfilled', 'released', 'expired', name='reservationstatus')


def upgrade() -> None:
    # 1. Catálogo base
    op.create_table('units',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('location', sa.String(length=300), nullable=True, comment='Dirección o referencia física'),
        sa.Column('contact_info', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )
    op.create_table('manufacturers',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(length=300), nullable=False),
        sa.Column('contact_info', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )
    op.create_table('reagents',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(length=300), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('type', sa.String(length=100), nullable=True, comment='Clasificación libre: enzimático, control, etc.'),
        sa.Column('unit_measure', unit_measure, nullable=False),
        sa.Column('minimum_stock', sa.Numeric(precision=12, scale=2), nullable=False, comment='Stock mínimo por lote para alerta'),
        sa.Column('storage_conditions', sa.String(length=300), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )
    op.create_table('exam_types',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('required_reagents', postgresql.JSONB(astext_type=sa.Text()), nullable=False, comment='Lista de {"reagent_id": str, "quantity": number}'),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )

    # 2. Usuarios y auditoría administrativa
    op.create_table('users',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('unit_id', sa.UUID(), nullable=True, comment='Unidad de laboratorio a la que pertenece'),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('role', user_role, nullable=False),
        sa.Column('full_name', sa.String(length=200), nullable=False),
        sa.Column('avatar_url', sa.String(length=500), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_unit_id'), 'users', ['unit_id'], unique=False)

    op.create_table('audit_log',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=True),
        sa.Column('entity', sa.String(length=50), nullable=False, comment='Nombre de la entidad: user, reagent, unit, exam_type, etc.'),
        sa.Column('entity_id', sa.String(length=36), nullable=False, comment='UUID del registro afectado'),
        sa.Column('action', sa.String(length=20), nullable=False, comment='create, update, deactivate, login, etc.'),
        sa.Column('old_data', postgresql.JSONB(astext_type=sa.Text()), nullable=True, comment='Snapshot del registro antes del cambio'),
        sa.Column('new_data', postgresql.JSONB(astext_type=sa.Text()), nullable=True, comment='Snapshot del registro después del cambio'),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_audit_log_action'), 'audit_log', ['action'], unique=False)
    op.create_index(op.f('ix_audit_log_entity'), 'audit_log', ['entity'], unique=False)
    op.create_index(op.f('ix_audit_log_user_id'), 'audit_log', ['user_id'], unique=False)

    op.create_table('user_gamification',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('total_points', sa.Integer(), nullable=False),
        sa.Column('level_name', sa.String(length=50), nullable=False),
        sa.Column('achievements', postgresql.JSONB(astext_type=sa.Text()), nullable=False, comment='Lista de {"id": str, "unlocked_at": iso}'),
        sa.Column('streaks', postgresql.JSONB(astext_type=sa.Text()), nullable=False, comment='{"daily": int, "last_active": "YYYY-MM-DD"}'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )

    # 3. Lotes y agendamientos
    op.create_table('reagent_lots',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('reagent_id', sa.UUID(), nullable=False),
        sa.Column('manufacturer_id', sa.UUID(), nullable=True),
        sa.Column('unit_id', sa.UUID(), nullable=False),
        sa.Column('registered_by', sa.UUID(), nullable=True),
        sa.Column('lot_number', sa.String(length=100), nullable=False),
        sa.Column('location', sa.String(length=300), nullable=True, comment='Ej: Geladeira A2, Prateleira 3'),
        sa.Column('expiry_date', sa.Date(), nullable=False),
        sa.Column('initial_quantity', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('current_quantity', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('reserved_quantity', sa.Numeric(precision=12, scale=2), nullable=False, comment='Cantidad retenida por reservas activas'),
        sa.Column('minimum_stock', sa.Numeric(precision=12, scale=2), nullable=True, comment='Si es NULL se usa el mínimo del reactivo'),
        sa.Column('criticality_level', criticality_level, nullable=False),
        sa.Column('status', lot_status, nullable=False),
        sa.Column('storage_conditions', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('qr_code_data', postgresql.JSONB(astext_type=sa.Text()), nullable=True, comment='Payload JSON impreso en la etiqueta QR'),
        sa.Column('audit_hash', sa.String(length=64), nullable=True, comment='Último data_hash registrado para lotes críticos'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.CheckConstraint('current_quantity >= 0', name='ck_lot_current_non_negative'),
        sa.CheckConstraint('reserved_quantity >= 0 AND reserved_quantity <= current_quantity', name='ck_lot_reserved_bounds'),
        sa.ForeignKeyConstraint(['manufacturer_id'], ['manufacturers.id'], ),
        sa.ForeignKeyConstraint(['reagent_id'], ['reagents.id'], ),
        sa.ForeignKeyConstraint(['registered_by'], ['users.id'], ),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reagent_id', 'lot_number', name='uq_lot_reagent_number')
    )
    op.create_index('idx_lot_expiry', 'reagent_lots', ['expiry_date'], unique=False)
    op.create_index('idx_lot_unit_status', 'reagent_lots', ['unit_id', 'status'], unique=False)

    op.create_table('appointments',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('exam_type_id', sa.UUID(), nullable=False),
        sa.Column('unit_id', sa.UUID(), nullable=False),
        sa.Column('created_by', sa.UUID(), nullable=True),
        sa.Column('completed_by', sa.UUID(), nullable=True),
        sa.Column('patient_name', sa.String(length=200), nullable=False),
        sa.Column('scheduled_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', appointment_status, nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['completed_by'], ['users.id'], ),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ),
        sa.ForeignKeyConstraint(['exam_type_id'], ['exam_types.id'], ),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_appointment_status', 'appointments', ['status'], unique=False)
    op.create_index('idx_appointment_unit_date', 'appointments', ['unit_id', 'scheduled_date'], unique=False)

    op.create_table('reagent_reservations',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('reagent_lot_id', sa.UUID(), nullable=False),
        sa.Column('appointment_id', sa.UUID(), nullable=True),
        sa.Column('created_by', sa.UUID(), nullable=True),
        sa.Column('quantity_reserved', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('status', reservation_status, nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['appointment_id'], ['appointments.id'], ),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ),
        sa.ForeignKeyConstraint(['reagent_lot_id'], ['reagent_lots.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_reservation_expires', 'reagent_reservations', ['status', 'expires_at'], unique=False)
    op.create_index('idx_reservation_lot_status', 'reagent_reservations', ['reagent_lot_id', 'status'], unique=False)

    # 4. Ledger de movimientos y trazabilidad
    op.create_table('consumption_logs',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('reagent_lot_id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=True),
        sa.Column('appointment_id', sa.UUID(), nullable=True),
        sa.Column('action_type', consumption_action, nullable=False),
        sa.Column('quantity_changed', sa.Numeric(precision=12, scale=2), nullable=False, comment='Siempre positiva'),
        sa.Column('quantity_before', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('quantity_after', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('points_awarded', sa.Integer(), nullable=False),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['appointment_id'], ['appointments.id'], ),
        sa.ForeignKeyConstraint(['reagent_lot_id'], ['reagent_lots.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_log_created', 'consumption_logs', ['created_at'], unique=False)
    op.create_index('idx_log_lot', 'consumption_logs', ['reagent_lot_id'], unique=False)
    op.create_index('idx_log_user_action', 'consumption_logs', ['user_id', 'action_type'], unique=False)

    op.create_table('audit_hashes',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('reagent_lot_id', sa.UUID(), nullable=False),
        sa.Column('transaction_type', consumption_action, nullable=False),
        sa.Column('transaction_hash', sa.String(length=120), nullable=False, comment='<TIPO>_<epoch ms>_<lot id>'),
        sa.Column('data_hash', sa.String(length=64), nullable=False, comment='SHA-256 hex del payload canónico'),
        sa.Column('payload', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['reagent_lot_id'], ['reagent_lots.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_hash')
    )
    op.create_index(op.f('ix_audit_hashes_reagent_lot_id'), 'audit_hashes', ['reagent_lot_id'], unique=False)

    op.create_table('qr_print_history',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('reagent_lot_id', sa.UUID(), nullable=False),
        sa.Column('printed_by', sa.UUID(), nullable=True),
        sa.Column('print_reason', sa.String(length=300), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['printed_by'], ['users.id'], ),
        sa.ForeignKeyConstraint(['reagent_lot_id'], ['reagent_lots.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_qr_print_history_reagent_lot_id'), 'qr_print_history', ['reagent_lot_id'], unique=False)

    op.create_table('disposal_certificates',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('reagent_lot_id', sa.UUID(), nullable=False),
        sa.Column('disposed_by', sa.UUID(), nullable=True),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('quantity', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('checklist', postgresql.JSONB(astext_type=sa.Text()), nullable=False, comment='IDs de ítems del checklist marcados'),
        sa.Column('photos', postgresql.JSONB(astext_type=sa.Text()), nullable=False, comment='Fotos como data URLs (base64 inline)'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['disposed_by'], ['users.id'], ),
        sa.ForeignKeyConstraint(['reagent_lot_id'], ['reagent_lots.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
        sa.UniqueConstraint('reagent_lot_id')
    )


def downgrade() -> None:
    op.drop_table('disposal_certificates')
    op.drop_index(op.f('ix_qr_print_history_reagent_lot_id'), table_name='qr_print_history')
    op.drop_table('qr_print_history')
    op.drop_index(op.f('ix_audit_hashes_reagent_lot_id'), table_name='audit_hashes')
    op.drop_table('audit_hashes')
    op.drop_index('idx_log_user_action', table_name='consumption_logs')
    op.drop_index('idx_log_lot', table_name='consumption_logs')
    op.drop_index('idx_log_created', table_name='consumption_logs')
    op.drop_table('consumption_logs')
    op.drop_index('idx_reservation_lot_status', table_name='reagent_reservations')
    op.drop_index('idx_reservation_expires', table_name='reagent_reservations')
    op.drop_table('reagent_reservations')
    op.drop_index('idx_appointment_unit_date', table_name='appointments')
    op.drop_index('idx_appointment_status', table_name='appointments')
    op.drop_table('appointments')
    op.drop_index('idx_lot_unit_status', table_name='reagent_lots')
    op.drop_index('idx_lot_expiry', table_name='reagent_lots')
    op.drop_table('reagent_lots')
    op.drop_table('user_gamification')
    op.drop_index(op.f('ix_audit_log_user_id'), table_name='audit_log')
    op.drop_index(op.f('ix_audit_log_entity'), table_name='audit_log')
    op.drop_index(op.f('ix_audit_log_action'), table_name='audit_log')
    op.drop_table('audit_log')
    op.drop_index(op.f('ix_users_unit_id'), table_name='users')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
    op.drop_table('exam_types')
    op.drop_table('reagents')
    op.drop_table('manufacturers')
    op.drop_table('units')

    for enum_type in (
        reservation_status, appointment_status, consumption_action,
        lot_status, criticality_level, unit_measure, user_role,
    ):
        enum_type.drop(op.get_bind(), checkfirst=True)
