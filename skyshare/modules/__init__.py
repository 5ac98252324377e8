"""
SkyShare Modules
================

Flask blueprint modules: news (article store + publish hook),
settings (Bluesky connection page) and crosspost (the Bluesky client).
"""

__all__ = ['crosspost', 'news', 'settings']
