"""
Settings Admin Routes
=====================

Admin interface for the Bluesky connection.
Saving an identifier + password triggers the login; the password is wiped
as soon as the login succeeds.
"""

from functools import wraps

from flask import render_template, request, redirect, url_for, session, jsonify, flash, current_app

from skyshare.core.logging_service import LoggingService
from skyshare.modules.crosspost.errors import CrossPostError
from skyshare.modules.crosspost.platforms.bluesky import sanitize_domain
from skyshare.modules.crosspost.session_manager import (
    DOMAIN_KEY, IDENTIFIER_KEY, PASSWORD_KEY, SECRET_KEYS
)
from . import settings_bp
from .database import BLUESKY_CATEGORY, SETTINGS_SCHEMA, mask_secret


def admin_required(f):
    """Decorator to require admin login"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'admin_id' not in session:
            login_url = current_app.config.get('SKYSHARE_LOGIN_URL', '/admin/login')
            return redirect(f"{login_url}?next={request.path}")
        return f(*args, **kwargs)
    return decorated_function


def _service():
    return current_app.extensions['skyshare_crosspost']


@settings_bp.route('/')
@admin_required
def settings_page():
    """Bluesky settings page"""
    service = _service()

    # Credentials were saved but never exchanged for a token yet
    service.session.maybe_login()

    status = service.status()
    creds = service.session.credentials()

    return render_template('settings/bluesky.html',
                           schema=SETTINGS_SCHEMA[BLUESKY_CATEGORY],
                           current_values={
                               DOMAIN_KEY: creds.domain or '',
                               IDENTIFIER_KEY: creds.identifier or '',
                               PASSWORD_KEY: '',
                           },
                           access_token_preview=mask_secret(creds.access_token) or '',
                           status=status,
                           recent_logs=LoggingService.recent('crosspost', limit=10))


@settings_bp.route('/save', methods=['POST'])
@admin_required
def save_settings():
    """Save Bluesky settings from form"""
    data = request.form.to_dict()
    service = _service()

    try:
        domain = sanitize_domain(data.get(DOMAIN_KEY) or service.session.default_domain)
    except ValueError as e:
        flash(f'Settings not saved: {e}', 'error')
        return redirect(url_for('settings.settings_page'))

    values = {
        DOMAIN_KEY: domain,
        IDENTIFIER_KEY: (data.get(IDENTIFIER_KEY) or '').strip() or None,
    }
    password = (data.get(PASSWORD_KEY) or '').strip()
    # An empty password field keeps whatever is pending
    if password:
        values[PASSWORD_KEY] = password

    service.settings.set_many(values, category=BLUESKY_CATEGORY, secret_keys=SECRET_KEYS)
    LoggingService.info('settings', 'Bluesky settings saved',
                        {'domain': domain, 'identifier': values[IDENTIFIER_KEY], 'password_set': bool(password)})

    session_manager = service.session
    if password and session_manager.credentials().access_token:
        # New password for an existing connection: log in again
        try:
            connected = session_manager.login() is not None
        except CrossPostError:
            connected = False
    else:
        connected = session_manager.maybe_login() is not None

    if password and not connected:
        flash('Settings saved, but connecting to Bluesky failed. Check the identifier and app password.', 'error')
    else:
        flash('Settings saved successfully', 'success')
    return redirect(url_for('settings.settings_page'))


@settings_bp.route('/disconnect', methods=['POST'])
@admin_required
def disconnect():
    """Forget the stored session"""
    _service().session.disconnect()
    flash('Disconnected from Bluesky', 'success')
    return redirect(url_for('settings.settings_page'))


@settings_bp.route('/api/status')
@admin_required
def api_status():
    """Connection status as JSON"""
    return jsonify(_service().status())
