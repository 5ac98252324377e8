"""
News Admin Module
=================

Minimal article store with a draft/publish workflow.
Publishing an article hands it to the cross-post service.
"""

from flask import Blueprint

news_bp = Blueprint(
    'news_admin',
    __name__,
    url_prefix='/admin/news-editor',
)

from . import routes

__all__ = ['news_bp']
