"""
Settings Module
===============

Admin page for connecting the site to a Bluesky account.
Credentials are encrypted at rest.
"""

from flask import Blueprint
import os

_template_dir = os.path.join(os.path.dirname(__file__), 'templates')

settings_bp = Blueprint('settings', __name__,
                        url_prefix='/admin/bluesky',
                        template_folder=_template_dir)

from . import routes
