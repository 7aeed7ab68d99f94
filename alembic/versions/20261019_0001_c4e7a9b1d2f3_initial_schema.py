"""initial schema

Revision ID: c4e7a9b1d2f3
Revises:
Create Date: 2026-10-19

Tables:
  users                 accounts; username_normalized is the uniqueness key
  otp_codes             email challenges; one unused row per email (partial unique)
  vehicles              garage entries, read here for primary_vehicle only
  friend_requests       directed; one pending row per (sender, receiver) (partial unique)
  friendships           canonical pair, user_one_id < user_two_id
  conversations         direct threads keyed by (type, canonical pair)
  conversation_members  one row per (conversation, user), carries last_read_at
  messages              text / image / system
"""
from alembic import op
import sqlalchemy as sa

revision = 'c4e7a9b1d2f3'
down_revision = None
branch_labels = None
depends_on = None

user_status = sa.Enum('online', 'driving', 'offline', name='user_status')
friend_request_status = sa.Enum('pending', 'accepted', 'rejected', name='friend_request_status')
conversation_type = sa.Enum('direct', name='conversation_type')
message_type = sa.Enum('text', 'image', 'system', name='message_type')


def _created_at() -> sa.Column:
    return sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False)


def upgrade() -> None:
    # ── users ──────────────────────────────────────────────────────────────
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('unique_id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(30), nullable=False),
        sa.Column('username_normalized', sa.String(30), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(32), nullable=True),
        sa.Column('password_hash', sa.String(), nullable=True),
        sa.Column('profile_picture_url', sa.String(500), nullable=True),
        sa.Column('status', user_status, server_default='offline', nullable=False),
        sa.Column('role', sa.String(20), server_default='user', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default='1', nullable=False),
        _created_at(),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.UniqueConstraint('phone', name='uq_users_phone'),
    )
    op.create_index('ix_users_unique_id', 'users', ['unique_id'], unique=True)
    op.create_index('ix_users_username_normalized', 'users', ['username_normalized'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # ── otp_codes ──────────────────────────────────────────────────────────
    op.create_table(
        'otp_codes',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(32), nullable=True),
        sa.Column('code', sa.String(6), nullable=False),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('is_used', sa.Boolean(), server_default='0', nullable=False),
        sa.Column('attempts', sa.Integer(), server_default='0', nullable=False),
        _created_at(),
    )
    op.create_index('ix_otp_codes_email', 'otp_codes', ['email'])
    op.create_index(
        'uq_otp_codes_active_email',
        'otp_codes',
        ['email'],
        unique=True,
        postgresql_where=sa.text('NOT is_used'),
    )

    # ── vehicles ───────────────────────────────────────────────────────────
    op.create_table(
        'vehicles',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('model', sa.String(120), nullable=False),
        sa.Column('power', sa.String(50), nullable=True),
        sa.Column('fuel_type', sa.String(30), nullable=True),
        sa.Column('modifications', sa.JSON(), nullable=True),
        sa.Column('image_url', sa.String(500), nullable=True),
        sa.Column('is_primary', sa.Boolean(), server_default='0', nullable=False),
        _created_at(),
    )
    op.create_index('ix_vehicles_user_id', 'vehicles', ['user_id'])

    # ── friend_requests ────────────────────────────────────────────────────
    op.create_table(
        'friend_requests',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('sender_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('receiver_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', friend_request_status, server_default='pending', nullable=False),
        _created_at(),
        sa.Column('responded_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint('sender_id <> receiver_id', name='ck_friend_requests_not_self'),
    )
    op.create_index('ix_friend_requests_sender_id', 'friend_requests', ['sender_id'])
    op.create_index('ix_friend_requests_receiver_id', 'friend_requests', ['receiver_id'])
    op.create_index(
        'uq_friend_requests_pending_pair',
        'friend_requests',
        ['sender_id', 'receiver_id'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    # ── friendships ────────────────────────────────────────────────────────
    op.create_table(
        'friendships',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_one_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_two_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        _created_at(),
        sa.UniqueConstraint('user_one_id', 'user_two_id', name='uq_friendships_pair'),
        sa.CheckConstraint('user_one_id < user_two_id', name='ck_friendships_order'),
    )
    op.create_index('ix_friendships_user_one_id', 'friendships', ['user_one_id'])
    op.create_index('ix_friendships_user_two_id', 'friendships', ['user_two_id'])

    # ── conversations ──────────────────────────────────────────────────────
    op.create_table(
        'conversations',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('type', conversation_type, server_default='direct', nullable=False),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column(
            'direct_user_one_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=True
        ),
        sa.Column(
            'direct_user_two_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=True
        ),
        _created_at(),
        sa.UniqueConstraint(
            'type', 'direct_user_one_id', 'direct_user_two_id', name='uq_conversations_direct_pair'
        ),
        sa.CheckConstraint(
            'direct_user_one_id IS NULL OR direct_user_one_id < direct_user_two_id',
            name='ck_conversations_direct_order',
        ),
    )
    op.create_index('ix_conversations_direct_user_one_id', 'conversations', ['direct_user_one_id'])
    op.create_index('ix_conversations_direct_user_two_id', 'conversations', ['direct_user_two_id'])

    # ── conversation_members ───────────────────────────────────────────────
    op.create_table(
        'conversation_members',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'conversation_id', sa.Integer(),
            sa.ForeignKey('conversations.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('joined_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('last_read_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.UniqueConstraint('conversation_id', 'user_id', name='uq_conversation_members'),
    )
    op.create_index('ix_conversation_members_conversation_id', 'conversation_members', ['conversation_id'])
    op.create_index('ix_conversation_members_user_id', 'conversation_members', ['user_id'])

    # ── messages ───────────────────────────────────────────────────────────
    op.create_table(
        'messages',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'conversation_id', sa.Integer(),
            sa.ForeignKey('conversations.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('sender_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('type', message_type, server_default='text', nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        _created_at(),
    )
    op.create_index('ix_messages_conversation_id', 'messages', ['conversation_id'])
    op.create_index('ix_messages_created_at', 'messages', ['created_at'])


def downgrade() -> None:
    op.drop_table('messages')
    op.drop_table('conversation_members')
    op.drop_table('conversations')
    op.drop_table('friendships')
    op.drop_table('friend_requests')
    op.drop_table('vehicles')
    op.drop_table('otp_codes')
    op.drop_table('users')

    # create_table made the enum types; drop_table leaves them behind on Postgres
    bind = op.get_bind()
    for enum in (message_type, conversation_type, friend_request_status, user_status):
        enum.drop(bind, checkfirst=True)
