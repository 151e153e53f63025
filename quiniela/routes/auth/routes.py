import logging

from flask import jsonify
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from quiniela import db, limiter, login_manager
from quiniela.forms.auth import LoginForm, RegistrationForm, sanitize_input
from quiniela.models import User
from quiniela.routes.auth import bp
from quiniela.utils.helpers import form_error_response

logger = logging.getLogger(__name__)


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@bp.route("/csrf-token")
def csrf_token():
    """Token for clients that send JSON writes with the X-CSRFToken header"""
    return jsonify({"csrf_token": generate_csrf()})


@bp.route("/register", methods=["POST"])
@limiter.limit("5 per hour")
def register():
    if current_user.is_authenticated:
        return jsonify({"error": "Already logged in"}), 400

    form = RegistrationForm()
    if not form.validate_on_submit():
        return form_error_response(form, "Registration failed")

    # Form validators already checked for duplicates
    user = User(
        name=sanitize_input(form.name.data),
        email=form.email.data.strip().lower(),
    )
    user.set_password(form.password.data)

    db.session.add(user)
    db.session.commit()
    logger.info(f"New user registered: {user.email} (id {user.id})")

    login_user(user)
    return jsonify({"message": "Registration successful", "user": user.to_dict()}), 201


@bp.route("/login", methods=["POST"])
@limiter.limit("10 per minute")
def login():
    form = LoginForm()
    if not form.validate_on_submit():
        return form_error_response(form, "Login failed")

    user = User.get_by_email(form.email.data)
    if user is None or not user.check_password(form.password.data):
        logger.warning(f"Failed login attempt for {form.email.data}")
        return jsonify({"error": "Invalid email or password"}), 401

    if not user.is_active:
        return jsonify({"error": "Your account has been deactivated"}), 403

    login_user(user, remember=form.remember_me.data)
    user.update_last_login()
    return jsonify({"message": f"Welcome back, {user.name}!", "user": user.to_dict()})


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"message": "You have been logged out successfully"})


@bp.route("/me")
@login_required
def me():
    return jsonify(current_user.to_dict())
