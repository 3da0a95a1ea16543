"""
Relational schema for Snapgram.

Profiles share their primary key with the auth user id. Likes and
follows are unique per (actor, target) pair.
"""

from sqlalchemy import (
    Column, DateTime, ForeignKey, MetaData, String, Table, Text, UniqueConstraint
)

metadata = MetaData()

profiles = Table(
    'profiles',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('username', String(64), nullable=False, unique=True),
    Column('full_name', String(255)),
    Column('avatar_url', Text),
    Column('bio', Text),
    Column('created_at', DateTime(timezone=True), nullable=False),
)

posts = Table(
    'posts',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('user_id', String(36), ForeignKey('profiles.id', ondelete='CASCADE'),
           nullable=False, index=True),
    Column('caption', Text),
    Column('image_url', Text, nullable=False),
    Column('created_at', DateTime(timezone=True), nullable=False, index=True),
    Column('updated_at', DateTime(timezone=True)),
)

likes = Table(
    'likes',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('user_id', String(36), ForeignKey('profiles.id', ondelete='CASCADE'),
           nullable=False),
    Column('post_id', String(36), ForeignKey('posts.id', ondelete='CASCADE'),
           nullable=False, index=True),
    Column('created_at', DateTime(timezone=True), nullable=False),
    UniqueConstraint('user_id', 'post_id', name='uq_likes_user_post'),
)

comments = Table(
    'comments',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('post_id', String(36), ForeignKey('posts.id', ondelete='CASCADE'),
           nullable=False, index=True),
    Column('user_id', String(36), ForeignKey('profiles.id', ondelete='CASCADE'),
           nullable=False),
    Column('content', Text, nullable=False),
    Column('created_at', DateTime(timezone=True), nullable=False),
    Column('updated_at', DateTime(timezone=True)),
)

follows = Table(
    'follows',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('follower_id', String(36), ForeignKey('profiles.id', ondelete='CASCADE'),
           nullable=False, index=True),
    Column('following_id', String(36), ForeignKey('profiles.id', ondelete='CASCADE'),
           nullable=False, index=True),
    Column('created_at', DateTime(timezone=True), nullable=False),
    UniqueConstraint('follower_id', 'following_id', name='uq_follows_pair'),
)

TIMESTAMPED_ON_UPDATE = ('posts', 'comments')
