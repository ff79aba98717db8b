"""
Authentication utility functions
"""
from functools import wraps

from flask import jsonify
from flask_login import current_user
from werkzeug.security import generate_password_hash, check_password_hash

def hash_password(password):
    """Generate password hash"""
    return generate_password_hash(password)

def verify_password(password_hash, password):
    """Verify password against hash"""
    return check_password_hash(password_hash, password)

def api_login_required(f):
    """Decorator to require a logged-in user; answers API clients with JSON 401"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'success': False, 'message': 'Authentication required'}), 401
        if not current_user.is_active:
            return jsonify({'success': False, 'message': 'Account is inactive'}), 403
        return f(*args, **kwargs)
    return decorated_function
