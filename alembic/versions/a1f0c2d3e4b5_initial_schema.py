"""initial schema: quizzes, sharing, attempts, games and limits

Revision ID: a1f0c2d3e4b5
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a1f0c2d3e4b5'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'quizzes',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('user_id', sa.String(128), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('difficulty', sa.String(16), nullable=False),
        sa.Column('source_text', sa.Text(), nullable=False),
        sa.Column('questions_json', sa.JSON(), nullable=False),
        sa.Column('flashcards_json', sa.JSON(), nullable=False),
        sa.Column('share_enabled', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('share_token', sa.String(64), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_quizzes_user_id', 'quizzes', ['user_id'])

    op.create_table(
        'share_links',
        sa.Column('token', sa.String(64), primary_key=True),
        sa.Column('quiz_id', sa.String(64), nullable=False),
        sa.Column('owner_id', sa.String(128), nullable=False),
        sa.Column('password_hash', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_share_links_quiz_id', 'share_links', ['quiz_id'])

    op.create_table(
        'share_views',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('token', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_share_views_token', 'share_views', ['token'])

    op.create_table(
        'quiz_attempts',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('token', sa.String(64), nullable=False),
        sa.Column('quiz_id', sa.String(64), nullable=False),
        sa.Column('owner_id', sa.String(128), nullable=True),
        sa.Column('name', sa.String(120), nullable=True),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('started_at_ms', sa.BigInteger(), nullable=False),
        sa.Column('completed_at_ms', sa.BigInteger(), nullable=True),
        sa.Column('answers', sa.JSON(), nullable=True),
        sa.Column('score', sa.Integer(), nullable=True),
        sa.Column('total', sa.Integer(), nullable=True),
        sa.Column('results', sa.JSON(), nullable=True),
        sa.Column('late', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_quiz_attempts_token', 'quiz_attempts', ['token'])
    op.create_index('ix_quiz_attempts_quiz_id', 'quiz_attempts', ['quiz_id'])

    op.create_table(
        'games',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('host_id', sa.String(128), nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('current_question_index', sa.Integer(), nullable=True),
        sa.Column('ends_at', sa.BigInteger(), server_default='0', nullable=False),
        sa.Column('answers_locked', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('show_answers', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('auto_reveal', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('questions', sa.JSON(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_games_host_id', 'games', ['host_id'])

    op.create_table(
        'game_participants',
        sa.Column('game_id', sa.String(64), sa.ForeignKey('games.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('participant_id', sa.String(128), primary_key=True),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('score', sa.Integer(), server_default='0', nullable=False),
        sa.Column('last_answered_question_index', sa.Integer(), server_default='-1', nullable=False),
        sa.Column('answers', sa.JSON(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        'cooldowns',
        sa.Column('scope', sa.String(32), primary_key=True),
        sa.Column('subject_id', sa.String(128), primary_key=True),
        sa.Column('last_submitted_at', sa.BigInteger(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
    )

    op.create_table(
        'usage_counters',
        sa.Column('subject_id', sa.String(128), primary_key=True),
        sa.Column('day', sa.String(10), primary_key=True),
        sa.Column('count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
    )

    op.create_table(
        'feedback',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('user_id', sa.String(128), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('platform', sa.String(16), nullable=False),
        sa.Column('app_version', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_feedback_user_id', 'feedback', ['user_id'])


def downgrade() -> None:
    op.drop_table('feedback')
    op.drop_table('usage_counters')
    op.drop_table('cooldowns')
    op.drop_table('game_participants')
    op.drop_table('games')
    op.drop_table('quiz_attempts')
    op.drop_table('share_views')
    op.drop_table('share_links')
    op.drop_table('quizzes')
