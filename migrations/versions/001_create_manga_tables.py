"""create manga, chapters and chapter_pages tables

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:01:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'manga',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('cover_url', sa.String(length=1000), nullable=True),
        sa.Column('banner_url', sa.String(length=1000), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=True),
        sa.Column('genres', sa.JSON(), nullable=True),
        sa.Column('author', sa.String(length=255), nullable=True),
        sa.Column('artist', sa.String(length=255), nullable=True),
        sa.Column('rating', sa.Float(), nullable=True),
        sa.Column('year', sa.Integer(), nullable=True),
        sa.Column('country', sa.String(length=20), nullable=True),
        sa.Column('alternative_titles', sa.JSON(), nullable=True),
        sa.Column('source', sa.String(length=100), nullable=False),
        sa.Column('source_url', sa.String(length=1000), nullable=False),
        sa.Column('last_scraped_at', sa.DateTime(), nullable=True),
        sa.Column('views', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('favorites', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('chapter_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_manga_slug'), 'manga', ['slug'], unique=True)

    op.create_table(
        'chapters',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('manga_id', sa.Integer(), nullable=False),
        sa.Column('chapter_number', sa.Float(), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=True),
        sa.Column('source_url', sa.String(length=1000), nullable=False),
        sa.Column('release_date', sa.String(length=100), nullable=True),
        sa.Column('views', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['manga_id'], ['manga.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('manga_id', 'chapter_number', name='uq_chapters_manga_number')
    )
    op.create_index(op.f('ix_chapters_manga_id'), 'chapters', ['manga_id'])

    op.create_table(
        'chapter_pages',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('chapter_id', sa.Integer(), nullable=False),
        sa.Column('page_number', sa.Integer(), nullable=False),
        sa.Column('image_url', sa.String(length=1000), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['chapter_id'], ['chapters.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('chapter_id', 'page_number', name='uq_chapter_pages_chapter_page')
    )
    op.create_index(op.f('ix_chapter_pages_chapter_id'), 'chapter_pages', ['chapter_id'])


def downgrade() -> None:
    op.drop_index(op.f('ix_chapter_pages_chapter_id'), table_name='chapter_pages')
    op.drop_table('chapter_pages')
    op.drop_index(op.f('ix_chapters_manga_id'), table_name='chapters')
    op.drop_table('chapters')
    op.drop_index(op.f('ix_manga_slug'), table_name='manga')
    op.drop_table('manga')
