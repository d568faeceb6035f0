"""Initial Peekify schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

Users with Spotify credentials, auth sessions, feed items with comments,
comment likes and reactions, the friend graph and requests, listening
history and web push subscriptions.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('spotify_id', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('display_name', sa.Text(), nullable=True),
        sa.Column('profile_picture_url', sa.Text(), nullable=True),
        sa.Column('username', sa.Text(), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('privacy_level', sa.Text(), nullable=False, server_default='friends'),
        sa.Column('timezone', sa.Text(), nullable=False, server_default='UTC'),
        sa.Column('notification_time', sa.Text(), nullable=False, server_default='21:00'),
        sa.Column('spotify_access_token', sa.Text(), nullable=True),
        sa.Column('spotify_refresh_token', sa.Text(), nullable=True),
        sa.Column('spotify_token_expires_at_utc', sa.Text(), nullable=True),
        sa.Column('last_synced_at_utc', sa.Text(), nullable=True),
        sa.Column('created_at_utc', sa.Text(), nullable=False),
        sa.Column('updated_at_utc', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('spotify_id'),
        sa.UniqueConstraint('username'),
        sa.CheckConstraint("privacy_level IN ('private', 'friends', 'public')", name='ck_users_privacy_level'),
    )

    op.create_table(
        'auth_sessions',
        sa.Column('session_token', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('created_at_utc', sa.Text(), nullable=False),
        sa.Column('expires_at_utc', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('session_token'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_auth_sessions_user', 'auth_sessions', ['user_id'])

    op.create_table(
        'feed_items',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('type', sa.Text(), nullable=False),
        sa.Column('content_json', sa.Text(), nullable=False),
        sa.Column('dedupe_key', sa.Text(), nullable=True),
        sa.Column('created_at_utc', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('dedupe_key'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_feed_items_created', 'feed_items', ['created_at_utc'])
    op.create_index('ix_feed_items_user_created', 'feed_items', ['user_id', 'created_at_utc'])

    op.create_table(
        'comments',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('feed_item_id', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_at_utc', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['feed_item_id'], ['feed_items.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_comments_feed_item', 'comments', ['feed_item_id', 'created_at_utc'])

    op.create_table(
        'comment_likes',
        sa.Column('comment_id', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('created_at_utc', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('comment_id', 'user_id'),
        sa.ForeignKeyConstraint(['comment_id'], ['comments.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )

    op.create_table(
        'reactions',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('feed_item_id', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('emoji', sa.Text(), nullable=False),
        sa.Column('created_at_utc', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('feed_item_id', 'user_id', 'emoji', name='uq_reactions_item_user_emoji'),
        sa.ForeignKeyConstraint(['feed_item_id'], ['feed_items.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )

    op.create_table(
        'friends',
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('friend_id', sa.Text(), nullable=False),
        sa.Column('created_at_utc', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('user_id', 'friend_id'),
        sa.CheckConstraint('user_id <> friend_id', name='ck_friends_not_self'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['friend_id'], ['users.id'], ondelete='CASCADE'),
    )

    op.create_table(
        'friend_requests',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('sender_id', sa.Text(), nullable=False),
        sa.Column('receiver_id', sa.Text(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False, server_default='pending'),
        sa.Column('created_at_utc', sa.Text(), nullable=False),
        sa.Column('updated_at_utc', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('sender_id <> receiver_id', name='ck_friend_requests_not_self'),
        sa.CheckConstraint("status IN ('pending', 'accepted', 'declined')", name='ck_friend_requests_status'),
        sa.ForeignKeyConstraint(['sender_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['receiver_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index(
        'uq_friend_requests_pending_pair',
        'friend_requests',
        ['sender_id', 'receiver_id'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )
    op.create_index('ix_friend_requests_receiver', 'friend_requests', ['receiver_id', 'status'])

    op.create_table(
        'listening_history',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('track_id', sa.Text(), nullable=False),
        sa.Column('track_name', sa.Text(), nullable=False),
        sa.Column('artist_name', sa.Text(), nullable=True),
        sa.Column('album_name', sa.Text(), nullable=True),
        sa.Column('album_art_url', sa.Text(), nullable=True),
        sa.Column('track_uri', sa.Text(), nullable=True),
        sa.Column('duration_ms', sa.Integer(), nullable=True),
        sa.Column('played_at_utc', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'played_at_utc', name='uq_listening_history_user_played'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_listening_history_user_played', 'listening_history', ['user_id', 'played_at_utc'])

    op.create_table(
        'push_subscriptions',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('endpoint', sa.Text(), nullable=False),
        sa.Column('p256dh', sa.Text(), nullable=False),
        sa.Column('auth', sa.Text(), nullable=False),
        sa.Column('created_at_utc', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('endpoint'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_push_subscriptions_user', 'push_subscriptions', ['user_id'])


def downgrade() -> None:
    op.drop_table('push_subscriptions')
    op.drop_table('listening_history')
    op.drop_index('ix_friend_requests_receiver', table_name='friend_requests')
    op.drop_index('uq_friend_requests_pending_pair', table_name='friend_requests')
    op.drop_table('friend_requests')
    op.drop_table('friends')
    op.drop_table('reactions')
    op.drop_table('comment_likes')
    op.drop_table('comments')
    op.drop_table('feed_items')
    op.drop_table('auth_sessions')
    op.drop_table('users')
