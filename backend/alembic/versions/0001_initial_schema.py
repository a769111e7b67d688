"""initial CrackZone schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _id() -> sa.Column:
    return sa.Column('id', sa.String(36), nullable=False)


def _fk(name: str, target: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.String(36), sa.ForeignKey(target), nullable=nullable)


def _enum(name: str, nullable: bool = False) -> sa.Column:
    # Enums are stored as plain strings
    return sa.Column(name, sa.String(32), nullable=nullable)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        _id(),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('username', sa.String(30), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(50), nullable=True),
        sa.Column('last_name', sa.String(50), nullable=True),
        sa.Column('avatar', sa.String(500), nullable=True),
        sa.Column('avatar_public_id', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('gamer_tag', sa.String(50), nullable=True),
        sa.Column('level', sa.Integer, nullable=False),
        sa.Column('experience', sa.Integer, nullable=False),
        sa.Column('coins', sa.Integer, nullable=False),
        _enum('role'),
        sa.Column('is_active', sa.Boolean, nullable=False),
        sa.Column('is_verified', sa.Boolean, nullable=False),
        sa.Column('profile_setup', sa.Boolean, nullable=False),
        sa.Column('game_setup', sa.Boolean, nullable=False),
        sa.Column('onboarding_complete', sa.Boolean, nullable=False),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.UniqueConstraint('gamer_tag', name='uq_users_gamer_tag'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'profiles',
        _id(),
        _fk('user_id', 'users.id'),
        sa.Column('bio', sa.Text, nullable=True),
        sa.Column('country', sa.String(2), nullable=True),
        sa.Column('timezone', sa.String(50), nullable=True),
        sa.Column('date_of_birth', sa.Date, nullable=True),
        sa.Column('preferences', sa.JSON, nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_profiles'),
        sa.UniqueConstraint('user_id', name='uq_profiles_user_id'),
    )

    op.create_table(
        'game_profiles',
        _id(),
        _fk('user_id', 'users.id'),
        sa.Column('game_id', sa.String(50), nullable=False),
        sa.Column('game_name', sa.String(100), nullable=False),
        sa.Column('game_uid', sa.String(100), nullable=False),
        sa.Column('in_game_name', sa.String(100), nullable=False),
        sa.Column('is_primary', sa.Boolean, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_game_profiles'),
        sa.UniqueConstraint('user_id', 'game_id', name='uq_game_profiles_user_id_game_id'),
    )
    op.create_index('ix_game_profiles_user_id', 'game_profiles', ['user_id'])

    op.create_table(
        'tournaments',
        _id(),
        sa.Column('title', sa.String(100), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('game', sa.String(50), nullable=False),
        _enum('format'),
        _enum('status'),
        sa.Column('max_participants', sa.Integer, nullable=False),
        sa.Column('entry_fee', sa.Integer, nullable=False),
        sa.Column('prize_pool', sa.Integer, nullable=False),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rules', sa.Text, nullable=True),
        sa.Column('banner_url', sa.String(500), nullable=True),
        sa.Column('banner_public_id', sa.String(255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_tournaments'),
    )
    op.create_index('ix_tournaments_game', 'tournaments', ['game'])
    op.create_index('ix_tournaments_status', 'tournaments', ['status'])

    op.create_table(
        'tournament_participants',
        _id(),
        _fk('tournament_id', 'tournaments.id'),
        _fk('user_id', 'users.id'),
        sa.Column('registered_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_tournament_participants'),
        sa.UniqueConstraint(
            'tournament_id', 'user_id', name='uq_tournament_participants_tournament_id_user_id'
        ),
    )
    op.create_index('ix_tournament_participants_tournament_id', 'tournament_participants', ['tournament_id'])
    op.create_index('ix_tournament_participants_user_id', 'tournament_participants', ['user_id'])

    op.create_table(
        'teams',
        _id(),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('avatar', sa.String(500), nullable=True),
        sa.Column('avatar_public_id', sa.String(255), nullable=True),
        sa.Column('max_members', sa.Integer, nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_teams'),
    )
    op.create_index('ix_teams_name', 'teams', ['name'])

    op.create_table(
        'team_members',
        _id(),
        _fk('team_id', 'teams.id'),
        _fk('user_id', 'users.id'),
        _enum('role'),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_team_members'),
        sa.UniqueConstraint('team_id', 'user_id', name='uq_team_members_team_id_user_id'),
    )
    op.create_index('ix_team_members_team_id', 'team_members', ['team_id'])
    op.create_index('ix_team_members_user_id', 'team_members', ['user_id'])

    op.create_table(
        'matches',
        _id(),
        sa.Column('title', sa.String(100), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('game', sa.String(50), nullable=False),
        _fk('tournament_id', 'tournaments.id', nullable=True),
        sa.Column('round', sa.Integer, nullable=True),
        _enum('status'),
        sa.Column('scheduled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('result', sa.JSON, nullable=True),
        sa.Column('screenshots', sa.JSON, nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_matches'),
    )
    op.create_index('ix_matches_game', 'matches', ['game'])
    op.create_index('ix_matches_tournament_id', 'matches', ['tournament_id'])
    op.create_index('ix_matches_status', 'matches', ['status'])

    op.create_table(
        'match_participants',
        _id(),
        _fk('match_id', 'matches.id'),
        _fk('user_id', 'users.id'),
        sa.Column('score', sa.Integer, nullable=True),
        sa.Column('position', sa.Integer, nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_match_participants'),
        sa.UniqueConstraint('match_id', 'user_id', name='uq_match_participants_match_id_user_id'),
    )
    op.create_index('ix_match_participants_match_id', 'match_participants', ['match_id'])
    op.create_index('ix_match_participants_user_id', 'match_participants', ['user_id'])

    op.create_table(
        'transactions',
        _id(),
        _fk('user_id', 'users.id'),
        _enum('type'),
        sa.Column('amount', sa.Integer, nullable=False),
        sa.Column('description', sa.String(255), nullable=True),
        _enum('status'),
        sa.Column('metadata', sa.JSON, nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_transactions'),
    )
    op.create_index('ix_transactions_user_id', 'transactions', ['user_id'])
    op.create_index('ix_transactions_type', 'transactions', ['type'])
    op.create_index('ix_transactions_status', 'transactions', ['status'])

    op.create_table(
        'orders',
        _id(),
        _fk('user_id', 'users.id'),
        sa.Column('items', sa.JSON, nullable=False),
        sa.Column('total_amount', sa.Integer, nullable=False),
        _enum('status'),
        sa.Column('shipping_address', sa.JSON, nullable=True),
        _enum('payment_method', nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_orders'),
    )
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])

    op.create_table(
        'rewards',
        _id(),
        sa.Column('title', sa.String(100), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        _enum('type'),
        sa.Column('value', sa.Integer, nullable=False),
        sa.Column('requirements', sa.JSON, nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_rewards'),
    )
    op.create_index('ix_rewards_type', 'rewards', ['type'])

    op.create_table(
        'user_rewards',
        _id(),
        _fk('user_id', 'users.id'),
        _fk('reward_id', 'rewards.id'),
        sa.Column('claimed', sa.Boolean, nullable=False),
        sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_user_rewards'),
        sa.UniqueConstraint('user_id', 'reward_id', name='uq_user_rewards_user_id_reward_id'),
    )
    op.create_index('ix_user_rewards_user_id', 'user_rewards', ['user_id'])
    op.create_index('ix_user_rewards_reward_id', 'user_rewards', ['reward_id'])

    op.create_table(
        'notifications',
        _id(),
        _fk('user_id', 'users.id'),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text, nullable=False),
        _enum('type'),
        sa.Column('is_read', sa.Boolean, nullable=False),
        sa.Column('metadata', sa.JSON, nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_notifications'),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_is_read', 'notifications', ['is_read'])


def downgrade() -> None:
    for table in (
        'notifications',
        'user_rewards',
        'rewards',
        'orders',
        'transactions',
        'match_participants',
        'matches',
        'team_members',
        'teams',
        'tournament_participants',
        'tournaments',
        'game_profiles',
        'profiles',
        'users',
    ):
        op.drop_table(table)
