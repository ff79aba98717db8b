"""
Authentication routes: register, login, logout (JSON API)
"""
from flask import request, Blueprint, jsonify, current_app
from flask_login import login_user, logout_user, current_user
from models import db
from models.user import User
from utils.auth_utils import hash_password, verify_password, api_login_required

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

GENERIC_ERROR = "Something went wrong. Please try again later."
MIN_PASSWORD_LENGTH = 8
ROLES = ('user', 'creator')

@auth_bp.route('/register', methods=['POST'])
def register():
    """User registration"""
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    role = (data.get('role') or 'user').strip().lower()

    errors = []
    if not name:
        errors.append('Name is required.')
    if not email or '@' not in email:
        errors.append('A valid email is required.')
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f'Password must be at least {MIN_PASSWORD_LENGTH} characters.')
    if role not in ROLES:
        errors.append('Role must be user or creator.')
    if errors:
        return jsonify({'success': False, 'errors': errors}), 400

    if User.query.filter_by(email=email).first():
        return jsonify({'success': False, 'errors': ['Email is already registered.']}), 409

    try:
        user = User(
            name=name,
            email=email,
            password_hash=hash_password(password),
            role=role,
            phone=(data.get('phone') or '').strip() or None,
        )
        db.session.add(user)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Registration failed for {email}: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': GENERIC_ERROR}), 500

    login_user(user)
    return jsonify({'success': True, 'user': user.to_dict()}), 201

@auth_bp.route('/login', methods=['POST'])
def login():
    """User login by email"""
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    if not email or not password:
        return jsonify({'success': False, 'message': 'Email and password are required.'}), 400

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(user.password_hash, password):
        return jsonify({'success': False, 'message': 'Invalid email or password.'}), 401

    if not user.is_active:
        return jsonify({'success': False, 'message': 'Your account is inactive. Please contact support.'}), 403

    login_user(user, remember=True)
    return jsonify({'success': True, 'user': user.to_dict()})

@auth_bp.route('/logout', methods=['POST'])
@api_login_required
def logout():
    """Log out the current user"""
    logout_user()
    return jsonify({'success': True})

@auth_bp.route('/me')
@api_login_required
def me():
    """Current user profile"""
    return jsonify({'success': True, 'user': current_user.to_dict()})
