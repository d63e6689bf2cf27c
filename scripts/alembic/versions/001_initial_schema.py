"""Initial schema with cars and bookings

Revision ID: 001_initial_schema
Revises: 
Create Date: 2024-02-20

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CAR_TYPES = ('SUV', 'Sedan', 'Van', 'Hatchback', 'Coupe', 'Convertible')
TRANSMISSIONS = ('Automatic', 'Manual')
BOOKING_STATUSES = ('pending', 'confirmed', 'canceled', 'completed')
PAYMENT_STATUSES = ('not_required', 'pending', 'paid', 'failed')


def upgrade() -> None:
    """Create cars and bookings tables."""
    op.create_table(
        'cars',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('model', sa.String(length=100), nullable=False),
        sa.Column('image', sa.String(length=500), nullable=False),
        sa.Column('price_per_day', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('type', sa.Enum(*CAR_TYPES, name='cartype', native_enum=False), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('transmission', sa.Enum(*TRANSMISSIONS, name='transmission', native_enum=False), nullable=False),
        sa.Column('features', sa.JSON(), nullable=False),
        sa.Column('available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('price_per_day >= 0', name='check_nonnegative_price'),
        sa.CheckConstraint('capacity > 0', name='check_positive_capacity'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_cars_available', 'cars', ['available'])
    op.create_index('ix_cars_created_at', 'cars', ['created_at'])

    op.create_table(
        'bookings',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('booking_reference', sa.String(length=32), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=True),
        sa.Column('car_id', sa.String(length=64), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        sa.Column('pickup_location', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('price_per_day', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('rental_days', sa.Integer(), nullable=False),
        sa.Column('booking_status', sa.Enum(*BOOKING_STATUSES, name='bookingstatus', native_enum=False), nullable=False, server_default='pending'),
        sa.Column('payment_status', sa.Enum(*PAYMENT_STATUSES, name='paymentstatus', native_enum=False), nullable=False, server_default='not_required'),
        sa.Column('refund_required', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('canceled_at', sa.DateTime(), nullable=True),
        sa.Column('synced', sa.Integer(), nullable=False, server_default='0'),
        sa.CheckConstraint('end_date > start_date', name='check_date_range'),
        sa.CheckConstraint('rental_days >= 1', name='check_positive_rental_days'),
        sa.CheckConstraint('total_price >= 0', name='check_nonnegative_total_price'),
        sa.ForeignKeyConstraint(['car_id'], ['cars.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_bookings_reference', 'bookings', ['booking_reference'], unique=True)
    op.create_index('ix_bookings_user_id', 'bookings', ['user_id'])
    op.create_index('ix_bookings_car_id', 'bookings', ['car_id'])
    op.create_index('ix_bookings_car_status', 'bookings', ['car_id', 'booking_status'])
    op.create_index('ix_bookings_created_at', 'bookings', ['created_at'])


def downgrade() -> None:
    """Drop bookings and cars tables."""
    op.drop_table('bookings')
    op.drop_table('cars')
