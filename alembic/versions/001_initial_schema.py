"""Initial schema: users, catalog, trips and itineraries

Revision ID: 001_initial_schema
Revises:
Create Date: 2025-01-01 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


ITEM_CATEGORIES = ('flight', 'hotel', 'activity', 'restaurant', 'transport', 'other')


def upgrade() -> None:
    user_role = postgresql.ENUM('user', 'admin', name='user_role')
    trip_status = postgresql.ENUM('planning', 'active', 'completed', 'cancelled', name='trip_status')
    item_category = postgresql.ENUM(*ITEM_CATEGORIES, name='item_category')
    bind = op.get_bind()
    user_role.create(bind, checkfirst=True)
    trip_status.create(bind, checkfirst=True)
    item_category.create(bind, checkfirst=True)

    # Users
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('avatar_path', sa.String(500), nullable=True),
        sa.Column('role', postgresql.ENUM(name='user_role', create_type=False), nullable=False, server_default='user'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('last_login', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'password_resets',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('token_hash', sa.String(64), nullable=False, unique=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('used_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_password_resets_user_id', 'password_resets', ['user_id'])

    # Catalog
    op.create_table(
        'cities',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('country', sa.String(255), nullable=False),
        sa.Column('country_code', sa.String(3), nullable=True),
        sa.Column('lat', sa.Float(), nullable=True),
        sa.Column('lng', sa.Float(), nullable=True),
        sa.Column('cost_index', sa.Float(), nullable=True),
        sa.Column('popularity_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('name', 'country', name='uq_cities_name_country'),
    )
    op.create_index('ix_cities_name', 'cities', ['name'])
    op.create_index('ix_cities_country', 'cities', ['country'])

    op.create_table(
        'activities',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('city_id', sa.Integer(), sa.ForeignKey('cities.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', postgresql.ENUM(name='item_category', create_type=False), nullable=False, server_default='activity'),
        sa.Column('duration_hours', sa.Float(), nullable=True),
        sa.Column('cost_min', sa.Numeric(10, 2), nullable=True),
        sa.Column('cost_max', sa.Numeric(10, 2), nullable=True),
        sa.Column('rating', sa.Float(), nullable=True),
        sa.Column('image_url', sa.String(500), nullable=True),
        sa.Column('website_url', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('cost_min IS NULL OR cost_max IS NULL OR cost_min <= cost_max', name='ck_activities_cost_range'),
    )
    op.create_index('ix_activities_city_id', 'activities', ['city_id'])

    # Trips
    op.create_table(
        'trips',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('cover_photo_path', sa.String(500), nullable=True),
        sa.Column('budget', sa.Numeric(10, 2), nullable=True),
        sa.Column('status', postgresql.ENUM(name='trip_status', create_type=False), nullable=False, server_default='planning'),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('public_url', sa.String(64), nullable=True, unique=True),
        sa.Column('featured', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('start_date IS NULL OR end_date IS NULL OR end_date > start_date', name='ck_trips_dates'),
    )
    op.create_index('ix_trips_user_id', 'trips', ['user_id'])

    op.create_table(
        'trip_cities',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('trip_id', sa.Integer(), sa.ForeignKey('trips.id', ondelete='CASCADE'), nullable=False),
        sa.Column('city_id', sa.Integer(), sa.ForeignKey('cities.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('arrival_date', sa.Date(), nullable=True),
        sa.Column('departure_date', sa.Date(), nullable=True),
        sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('trip_id', 'city_id', name='uq_trip_cities_trip_city'),
    )
    op.create_index('ix_trip_cities_trip_id', 'trip_cities', ['trip_id'])
    op.create_index('ix_trip_cities_city_id', 'trip_cities', ['city_id'])

    op.create_table(
        'itinerary_items',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('trip_id', sa.Integer(), sa.ForeignKey('trips.id', ondelete='CASCADE'), nullable=False),
        sa.Column('city_id', sa.Integer(), sa.ForeignKey('cities.id', ondelete='RESTRICT'), nullable=True),
        sa.Column('activity_id', sa.Integer(), sa.ForeignKey('activities.id', ondelete='RESTRICT'), nullable=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('location', sa.String(500), nullable=True),
        sa.Column('start_time', sa.DateTime(), nullable=True),
        sa.Column('end_time', sa.DateTime(), nullable=True),
        sa.Column('cost', sa.Numeric(10, 2), nullable=True),
        sa.Column('category', postgresql.ENUM(name='item_category', create_type=False), nullable=False, server_default='other'),
        sa.Column('booking_reference', sa.String(255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_itinerary_items_trip_id', 'itinerary_items', ['trip_id'])
    op.create_index('ix_itinerary_items_city_id', 'itinerary_items', ['city_id'])
    op.create_index('ix_itinerary_items_activity_id', 'itinerary_items', ['activity_id'])
    op.create_index('ix_itinerary_items_trip_start', 'itinerary_items', ['trip_id', 'start_time'])


def downgrade() -> None:
    op.drop_index('ix_itinerary_items_trip_start', table_name='itinerary_items')
    op.drop_index('ix_itinerary_items_activity_id', table_name='itinerary_items')
    op.drop_index('ix_itinerary_items_city_id', table_name='itinerary_items')
    op.drop_index('ix_itinerary_items_trip_id', table_name='itinerary_items')
    op.drop_table('itinerary_items')

    op.drop_index('ix_trip_cities_city_id', table_name='trip_cities')
    op.drop_index('ix_trip_cities_trip_id', table_name='trip_cities')
    op.drop_table('trip_cities')

    op.drop_index('ix_trips_user_id', table_name='trips')
    op.drop_table('trips')

    op.drop_index('ix_activities_city_id', table_name='activities')
    op.drop_table('activities')

    op.drop_index('ix_cities_country', table_name='cities')
    op.drop_index('ix_cities_name', table_name='cities')
    op.drop_table('cities')

    op.drop_index('ix_password_resets_user_id', table_name='password_resets')
    op.drop_table('password_resets')

    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')

    bind = op.get_bind()
    postgresql.ENUM(name='item_category').drop(bind, checkfirst=True)
    postgresql.ENUM(name='trip_status').drop(bind, checkfirst=True)
    postgresql.ENUM(name='user_role').drop(bind, checkfirst=True)
