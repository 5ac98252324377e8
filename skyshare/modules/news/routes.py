"""
News Admin Routes
=================

Article storage and the JSON API used by the editor.
The draft -> published transition is the publish hook for cross-posting.
"""

import re
import sqlite3
from datetime import datetime, timezone

from flask import request, session, jsonify, current_app

from skyshare.core.config import Config
from skyshare.core.database import Database
from skyshare.core.logging_service import LoggingService
from skyshare.modules.crosspost.models import Post
from . import news_bp

ARTICLE_COLUMNS = ['id', 'title', 'slug', 'content', 'excerpt', 'status',
                   'created_at', 'updated_at', 'published_at']

# ===== Database Helper Functions =====

def get_db_config():
    """Get the news database path from app config or Config"""
    try:
        val = current_app.config.get('NEWS_DB')
        if val:
            return val
    except RuntimeError:
        pass
    return Config.NEWS_DB


def get_site_url():
    try:
        val = current_app.config.get('SITE_URL')
        if val:
            return val
    except RuntimeError:
        pass
    return Config.SITE_URL


def init_news_db(news_db=None):
    """Initialize news database"""
    news_db = news_db or get_db_config()
    with Database.transaction(news_db) as conn:
        conn.execute('''
            CREATE TABLE IF NOT EXISTS news_articles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                slug TEXT NOT NULL UNIQUE,
                content TEXT NOT NULL,
                excerpt TEXT,
                status TEXT DEFAULT 'draft',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                published_at TIMESTAMP
            )
        ''')
        conn.execute('CREATE INDEX IF NOT EXISTS idx_news_status ON news_articles(status)')
    return news_db


def create_slug(conn, title):
    """Create URL-friendly slug with uniqueness checking"""
    slug = re.sub(r'[^\w\s-]', '', title.lower())
    slug = re.sub(r'[-\s]+', '-', slug).strip('-') or 'article'

    base_slug = slug
    counter = 1
    while conn.execute('SELECT id FROM news_articles WHERE slug = ?', (slug,)).fetchone():
        slug = f"{base_slug}-{counter}"
        counter += 1
    return slug


def _utc_now():
    return datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')


def _row_to_article(row):
    return dict(zip(ARTICLE_COLUMNS, row)) if row else None


def get_all_articles_db(status=None, news_db=None):
    """Get all articles with optional status filter"""
    news_db = news_db or get_db_config()
    query = f"SELECT {', '.join(ARTICLE_COLUMNS)} FROM news_articles"
    params = ()
    if status:
        query += ' WHERE status = ?'
        params = (status,)
    query += ' ORDER BY created_at DESC, id DESC'

    with Database.transaction(news_db) as conn:
        rows = conn.execute(query, params).fetchall()
    return [_row_to_article(row) for row in rows]


def create_article_db(title, content, excerpt=None, status='draft', news_db=None):
    """Create new article. Returns (id, slug)."""
    news_db = news_db or get_db_config()
    published_at = _utc_now() if status == 'published' else None

    with Database.transaction(news_db) as conn:
        slug = create_slug(conn, title)
        cursor = conn.execute('''
            INSERT INTO news_articles (title, slug, content, excerpt, status, published_at)
            VALUES (?, ?, ?, ?, ?, ?)
        ''', (title.strip(), slug, content.strip(), excerpt, status, published_at))
        return cursor.lastrowid, slug


def get_article_db(article_id, news_db=None):
    """Get single article by ID"""
    news_db = news_db or get_db_config()
    try:
        with Database.transaction(news_db) as conn:
            row = conn.execute(
                f"SELECT {', '.join(ARTICLE_COLUMNS)} FROM news_articles WHERE id = ?", (article_id,)
            ).fetchone()
    except sqlite3.Error as e:
        LoggingService.error('news', f"Error getting article {article_id}: {e}")
        return None
    return _row_to_article(row)


def update_article_db(article_id, title, content, excerpt=None, news_db=None):
    """Update title, content and excerpt. Status changes go through set_article_status_db."""
    news_db = news_db or get_db_config()
    if not title.strip() or not content.strip():
        raise ValueError("Title and content cannot be empty")

    with Database.transaction(news_db) as conn:
        current = conn.execute('SELECT title, slug FROM news_articles WHERE id = ?', (article_id,)).fetchone()
        if not current:
            return False

        slug = current[1] if current[0] == title.strip() else create_slug(conn, title)
        cursor = conn.execute('''
            UPDATE news_articles
            SET title = ?, slug = ?, content = ?, excerpt = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        ''', (title.strip(), slug, content.strip(), excerpt, article_id))
        return cursor.rowcount > 0


def set_article_status_db(article_id, status, news_db=None):
    """
    Set an article's status.

    Returns:
        (previous_status, new_status), or None when the article does not exist
    """
    news_db = news_db or get_db_config()
    with Database.transaction(news_db) as conn:
        row = conn.execute('SELECT status FROM news_articles WHERE id = ?', (article_id,)).fetchone()
        if not row:
            return None

        previous = row[0]
        if status == 'published' and previous != 'published':
            conn.execute('''
                UPDATE news_articles
                SET status = ?, published_at = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
            ''', (status, _utc_now(), article_id))
        else:
            conn.execute('''
                UPDATE news_articles
                SET status = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
            ''', (status, article_id))
    return previous, status


def get_shortlink(article_id, site_url=None):
    """Canonical short permalink for an article"""
    site_url = (site_url or get_site_url()).rstrip('/')
    return f"{site_url}/?p={article_id}"


def load_post(article_id, news_db=None, site_url=None):
    """Load an article as the Post the cross-post service shares, or None."""
    article = get_article_db(article_id, news_db)
    if not article:
        return None
    return Post(
        id=article['id'],
        title=article['title'],
        content=article['content'] or '',
        excerpt=article['excerpt'] or '',
        published_at=article['published_at'] or article['created_at'],
        shortlink=get_shortlink(article['id'], site_url),
    )


def notify_published(article_id):
    """
    Publish hook: hand the article to the cross-post service.
    Crossposting must never fail the publishing request.
    """
    service = current_app.extensions.get('skyshare_crosspost')
    if service is None:
        return False
    try:
        return service.on_publish(article_id)
    except Exception as e:
        LoggingService.log_error_with_traceback('news', e, {'article_id': article_id})
        return False


# ===== Routes =====

def _auth_error():
    return jsonify({'error': 'Authentication required'}), 401


@news_bp.route('/api/articles', methods=['GET'])
def get_articles():
    """Get all articles"""
    if 'admin_id' not in session:
        return _auth_error()

    init_news_db()
    return jsonify(get_all_articles_db(request.args.get('status')))


@news_bp.route('/api/articles/<int:article_id>', methods=['GET'])
def get_article(article_id):
    """Get single article"""
    if 'admin_id' not in session:
        return _auth_error()

    article = get_article_db(article_id)
    if article:
        return jsonify(article)
    return jsonify({'error': 'Article not found'}), 404


@news_bp.route('/api/articles', methods=['POST'])
def create_article():
    """Create new article"""
    if 'admin_id' not in session:
        return _auth_error()

    data = request.get_json(silent=True) or {}
    title = (data.get('title') or '').strip()
    content = (data.get('content') or '').strip()
    excerpt = data.get('excerpt') or None
    status = data.get('status', 'draft')

    if not title or not content:
        return jsonify({'error': 'Title and content are required'}), 400
    if status not in ('draft', 'published'):
        return jsonify({'error': 'Status must be draft or published'}), 400

    try:
        init_news_db()
        article_id, slug = create_article_db(title, content, excerpt, status)
    except sqlite3.Error as e:
        LoggingService.error('news', f"Error creating article: {e}")
        return jsonify({'error': str(e)}), 500

    crossposted = notify_published(article_id) if status == 'published' else False
    return jsonify({
        'success': True,
        'id': article_id,
        'slug': slug,
        'status': status,
        'crosspost_queued': crossposted,
    })


@news_bp.route('/api/articles/<int:article_id>', methods=['PUT'])
def update_article(article_id):
    """Update article"""
    if 'admin_id' not in session:
        return _auth_error()

    data = request.get_json(silent=True) or {}
    title = data.get('title') or ''
    content = data.get('content') or ''
    if not title.strip() or not content.strip():
        return jsonify({'error': 'Title and content are required'}), 400

    try:
        updated = update_article_db(article_id, title, content, data.get('excerpt') or None)
    except sqlite3.Error as e:
        LoggingService.error('news', f"Error updating article {article_id}: {e}")
        return jsonify({'error': str(e)}), 500

    if updated:
        return jsonify({'success': True, 'message': 'Article updated successfully'})
    return jsonify({'error': 'Article not found'}), 404


@news_bp.route('/api/articles/<int:article_id>/publish', methods=['POST'])
def publish_article(article_id):
    """Publish an article; a draft -> published transition triggers cross-posting"""
    if 'admin_id' not in session:
        return _auth_error()

    result = set_article_status_db(article_id, 'published')
    if result is None:
        return jsonify({'error': 'Article not found'}), 404

    previous, status = result
    crossposted = notify_published(article_id) if previous != 'published' else False
    return jsonify({'success': True, 'status': status, 'crosspost_queued': crossposted})


@news_bp.route('/api/articles/<int:article_id>/unpublish', methods=['POST'])
def unpublish_article(article_id):
    """Move an article back to draft (already queued shares still go out)"""
    if 'admin_id' not in session:
        return _auth_error()

    result = set_article_status_db(article_id, 'draft')
    if result is None:
        return jsonify({'error': 'Article not found'}), 404
    return jsonify({'success': True, 'status': result[1]})
