"""
SkyShare Starter Template
=========================

A ready-to-run Flask application that shares published articles on Bluesky.

Run with:
    python app.py

Visit:
    http://localhost:5000/admin/login    - Dev login (sets the admin session)
    http://localhost:5000/admin/bluesky/ - Connect your Bluesky account
"""

from flask import Flask, redirect, request, session
from skyshare import SkyShare

from config import Config

# Create Flask app
app = Flask(__name__)
app.config.from_object(Config)

# Initialize SkyShare - registers the blueprints and starts the task worker
skyshare = SkyShare(app)


# =============================================================================
# Your Routes - Add your own routes below
# =============================================================================

@app.route('/')
def index():
    """Homepage"""
    return '<h1>My Site</h1><p><a href="/admin/bluesky/">Share on Bluesky settings</a></p>'


@app.route('/admin/login')
def admin_login():
    """Dev login. Replace with your own authentication."""
    session['admin_id'] = 1
    return redirect(request.args.get('next') or '/admin/bluesky/')


# =============================================================================
# Run the app
# =============================================================================

if __name__ == '__main__':
    print("\n" + "=" * 60)
    print("SkyShare Starter Template")
    print("=" * 60)
    print(f"Homepage:        {Config.SITE_URL}")
    print(f"Bluesky Setup:   {Config.SITE_URL}/admin/bluesky/")
    print(f"Articles API:    {Config.SITE_URL}/admin/news-editor/api/articles")
    print("=" * 60 + "\n")

    # use_reloader=False keeps a single task worker thread
    app.run(host='0.0.0.0', port=5000, debug=True, use_reloader=False)
