"""create background_download_queue table

Revision ID: 003
Revises: 002
Create Date: 2026-10-18 00:03:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '003'
down_revision = '002'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'background_download_queue',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('manga_id', sa.Integer(), nullable=True),
        sa.Column('chapter_id', sa.Integer(), nullable=True),
        sa.Column('source', sa.String(length=100), nullable=False),
        sa.Column('source_url', sa.String(length=1000), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_attempts', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['manga_id'], ['manga.id']),
        sa.ForeignKeyConstraint(['chapter_id'], ['chapters.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_background_download_queue_status'), 'background_download_queue', ['status'])
    op.create_index(op.f('ix_background_download_queue_manga_id'), 'background_download_queue', ['manga_id'])
    op.create_index(op.f('ix_background_download_queue_chapter_id'), 'background_download_queue', ['chapter_id'])


def downgrade() -> None:
    op.drop_index(op.f('ix_background_download_queue_chapter_id'), table_name='background_download_queue')
    op.drop_index(op.f('ix_background_download_queue_manga_id'), table_name='background_download_queue')
    op.drop_index(op.f('ix_background_download_queue_status'), table_name='background_download_queue')
    op.drop_table('background_download_queue')
