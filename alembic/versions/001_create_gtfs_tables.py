"""Create GTFS tables

Revision ID: 001
Revises:
Create Date: 2025-10-18
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Feed snapshots, one per committed sync
    op.create_table(
        'gtfs_feeds',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('source_url', sa.String(500), nullable=False),
        sa.Column('feed_version', sa.String(100), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='completed'),
        sa.Column('downloaded_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('agencies_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stops_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('routes_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('shapes_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('trips_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stop_times_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('calendar_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('calendar_dates_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('transfers_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('frequencies_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('skipped_rows', sa.Integer(), nullable=False, server_default='0'),
    )
    op.create_index('ix_gtfs_feeds_downloaded_at', 'gtfs_feeds', ['downloaded_at'])

    # Agency table
    op.create_table(
        'gtfs_agencies',
        sa.Column('id', sa.String(100), primary_key=True),
        sa.Column('feed_id', sa.Integer(), sa.ForeignKey('gtfs_feeds.id'), nullable=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('url', sa.String(500), nullable=False),
        sa.Column('timezone', sa.String(100), nullable=False, server_default='America/Santiago'),
        sa.Column('lang', sa.String(10), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
    )

    # Stops table; parent_station_id is resolved after import, no FK
    op.create_table(
        'gtfs_stops',
        sa.Column('id', sa.String(100), primary_key=True),
        sa.Column('feed_id', sa.Integer(), sa.ForeignKey('gtfs_feeds.id'), nullable=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('lat', sa.Float(), nullable=False),
        sa.Column('lon', sa.Float(), nullable=False),
        sa.Column('code', sa.String(50), nullable=True),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('zone_id', sa.String(100), nullable=True),
        sa.Column('location_type', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('parent_station_id', sa.String(100), nullable=True),
        sa.Column('wheelchair_boarding', sa.Integer(), nullable=False, server_default='0'),
    )
    op.create_index('ix_stops_lat_lon', 'gtfs_stops', ['lat', 'lon'])

    # Routes table
    op.create_table(
        'gtfs_routes',
        sa.Column('id', sa.String(100), primary_key=True),
        sa.Column('feed_id', sa.Integer(), sa.ForeignKey('gtfs_feeds.id'), nullable=True),
        sa.Column('agency_id', sa.String(100), nullable=True),
        sa.Column('short_name', sa.String(50), nullable=True),
        sa.Column('long_name', sa.String(255), nullable=True),
        sa.Column('route_type', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('color', sa.String(6), nullable=True),
        sa.Column('text_color', sa.String(6), nullable=True),
    )

    # Shape points table
    op.create_table(
        'gtfs_shapes',
        sa.Column('shape_id', sa.String(100), primary_key=True),
        sa.Column('sequence', sa.Integer(), primary_key=True),
        sa.Column('lat', sa.Float(), nullable=False),
        sa.Column('lon', sa.Float(), nullable=False),
        sa.Column('dist_traveled', sa.Float(), nullable=True),
        sa.Column('feed_id', sa.Integer(), sa.ForeignKey('gtfs_feeds.id'), nullable=True),
    )
    op.create_index('ix_shapes_shape_id', 'gtfs_shapes', ['shape_id'])

    # Trips table
    op.create_table(
        'gtfs_trips',
        sa.Column('id', sa.String(100), primary_key=True),
        sa.Column('feed_id', sa.Integer(), sa.ForeignKey('gtfs_feeds.id'), nullable=True),
        sa.Column('route_id', sa.String(100), sa.ForeignKey('gtfs_routes.id'), nullable=False),
        sa.Column('service_id', sa.String(100), nullable=False, server_default=''),
        sa.Column('headsign', sa.String(255), nullable=True),
        sa.Column('direction_id', sa.Integer(), nullable=True),
        sa.Column('shape_id', sa.String(100), nullable=True),
    )
    op.create_index('ix_trips_route_id', 'gtfs_trips', ['route_id'])

    # Stop times table
    op.create_table(
        'gtfs_stop_times',
        sa.Column('trip_id', sa.String(100), sa.ForeignKey('gtfs_trips.id'), primary_key=True),
        sa.Column('stop_sequence', sa.Integer(), primary_key=True),
        sa.Column('stop_id', sa.String(100), sa.ForeignKey('gtfs_stops.id'), nullable=False),
        sa.Column('feed_id', sa.Integer(), sa.ForeignKey('gtfs_feeds.id'), nullable=True),
        sa.Column('arrival_time', sa.String(10), nullable=True),
        sa.Column('departure_time', sa.String(10), nullable=True),
        sa.Column('arrival_seconds', sa.Integer(), nullable=True),
        sa.Column('departure_seconds', sa.Integer(), nullable=True),
        sa.Column('shape_dist_traveled', sa.Float(), nullable=True),
    )
    op.create_index('ix_stop_times_stop_id', 'gtfs_stop_times', ['stop_id'])
    op.create_index('ix_stop_times_arrival', 'gtfs_stop_times', ['arrival_seconds'])

    # Calendar table
    op.create_table(
        'gtfs_calendar',
        sa.Column('service_id', sa.String(100), primary_key=True),
        sa.Column('feed_id', sa.Integer(), sa.ForeignKey('gtfs_feeds.id'), nullable=True),
        sa.Column('monday', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('tuesday', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('wednesday', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('thursday', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('friday', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('saturday', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('sunday', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
    )

    # Calendar dates (exceptions)
    op.create_table(
        'gtfs_calendar_dates',
        sa.Column('service_id', sa.String(100), primary_key=True),
        sa.Column('date', sa.Date(), primary_key=True),
        sa.Column('exception_type', sa.Integer(), nullable=False),
        sa.Column('feed_id', sa.Integer(), sa.ForeignKey('gtfs_feeds.id'), nullable=True),
    )
    op.create_index('ix_calendar_dates_date', 'gtfs_calendar_dates', ['date'])

    # Transfers table
    op.create_table(
        'gtfs_transfers',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('from_stop_id', sa.String(100), sa.ForeignKey('gtfs_stops.id'), nullable=False),
        sa.Column('to_stop_id', sa.String(100), sa.ForeignKey('gtfs_stops.id'), nullable=False),
        sa.Column('transfer_type', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('min_transfer_time', sa.Integer(), nullable=True),
        sa.Column('feed_id', sa.Integer(), sa.ForeignKey('gtfs_feeds.id'), nullable=True),
    )
    op.create_index('ix_transfers_from_stop', 'gtfs_transfers', ['from_stop_id'])

    # Frequencies table (headway-based trips)
    op.create_table(
        'gtfs_frequencies',
        sa.Column('trip_id', sa.String(100), sa.ForeignKey('gtfs_trips.id'), primary_key=True),
        sa.Column('start_time', sa.String(10), primary_key=True),
        sa.Column('end_time', sa.String(10), nullable=False),
        sa.Column('headway_secs', sa.Integer(), nullable=False),
        sa.Column('exact_times', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('feed_id', sa.Integer(), sa.ForeignKey('gtfs_feeds.id'), nullable=True),
    )


def downgrade() -> None:
    op.drop_table('gtfs_frequencies')
    op.drop_table('gtfs_transfers')
    op.drop_table('gtfs_calendar_dates')
    op.drop_table('gtfs_calendar')
    op.drop_table('gtfs_stop_times')
    op.drop_table('gtfs_trips')
    op.drop_table('gtfs_shapes')
    op.drop_table('gtfs_routes')
    op.drop_table('gtfs_stops')
    op.drop_table('gtfs_agencies')
    op.drop_table('gtfs_feeds')
