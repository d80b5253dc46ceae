from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, logout_user, current_user
from sudoku_classic import db
from sudoku_classic.errors import StoreAccessError
from sudoku_classic.models import User
from sudoku_classic.services.identity import current_context, local_kv

main = Blueprint('main', __name__)


def _guest_key():
    return current_app.config.get('GUEST_FLAG_KEY', 'is_guest')


@main.route('/login', methods=['POST'])
def login():
    """Accept the identity yielded by the federated sign-in provider."""
    data = request.get_json(silent=True) or {}
    uid = (data.get('uid') or '').strip()
    if not uid:
        return jsonify({'error': 'uid is required'}), 400

    user = User.query.filter_by(uid=uid).first()
    if user is None:
        user = User(uid=uid)
    user.email = data.get('email') or user.email
    db.session.add(user)
    db.session.commit()
    login_user(user, remember=True)
    try:
        local_kv().remove(_guest_key())
    except StoreAccessError as exc:
        current_app.logger.warning(f"[login] guest flag not cleared: {exc}")
    current_app.logger.info(f"[login] uid={user.uid}")
    return jsonify(current_context().to_dict())


@main.route('/guest', methods=['POST'])
def login_as_guest():
    try:
        local_kv().set(_guest_key(), 'true')
    except StoreAccessError as exc:
        return jsonify({'error': str(exc)}), 500
    return jsonify(current_context().to_dict())


@main.route('/logout', methods=['POST'])
def logout():
    if current_user.is_authenticated:
        logout_user()
    try:
        local_kv().remove(_guest_key())
    except StoreAccessError as exc:
        return jsonify({'error': str(exc)}), 500
    return jsonify(current_context().to_dict())


@main.route('/me', methods=['GET'])
def me():
    try:
        return jsonify(current_context().to_dict())
    except StoreAccessError as exc:
        return jsonify({'error': str(exc)}), 500
