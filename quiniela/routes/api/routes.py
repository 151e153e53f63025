import logging
from functools import wraps

from flask import abort, jsonify
from flask_login import current_user, login_required

from quiniela import db
from quiniela.forms.auth import AdminUserForm, RoleForm, UserEditForm, sanitize_input
from quiniela.models import User
from quiniela.models.user import ROLE_ADMIN
from quiniela.routes.api import bp
from quiniela.services.pool_service import get_pool_service
from quiniela.utils.cache_utils import cached_route
from quiniela.utils.helpers import form_error_response

logger = logging.getLogger(__name__)


def admin_required(f):
    """Only site administrators may call the wrapped view"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_admin:
            logger.warning(f"User {current_user.id} denied access to {f.__name__}")
            abort(403)
        return f(*args, **kwargs)

    return decorated_function


def no_store(f):
    """Keep per-user API responses out of shared caches"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        response = f(*args, **kwargs)
        if hasattr(response, "headers"):
            response.headers["Cache-Control"] = (
                "no-store, no-cache, must-revalidate, max-age=0"
            )
        return response

    return decorated_function


@bp.route("/leaderboard")
@login_required
@cached_route(timeout=300, key_prefix="leaderboard")
def global_leaderboard():
    """Total points per user across every quiniela"""
    entries = get_pool_service().global_leaderboard()
    names = User.names_by_id([entry["user_id"] for entry in entries])

    return {
        "leaderboard": [
            {**entry, "name": names.get(entry["user_id"])} for entry in entries
        ]
    }


@bp.route("/stats/user")
@login_required
@no_store
def user_stats():
    """Current user's standing in each quiniela they joined"""
    performance = get_pool_service().user_performance(current_user.id)
    return jsonify(
        {
            "user": current_user.to_dict(),
            "total_points": sum(entry["points"] for entry in performance),
            "quinielas": performance,
        }
    )


# Administration


@bp.route("/admin/users")
@login_required
@admin_required
def list_users():
    users = User.query.order_by(User.created_at).all()
    return jsonify([user.to_dict() for user in users])


@bp.route("/admin/users", methods=["POST"])
@login_required
@admin_required
def create_user():
    """Create an account on someone's behalf, optionally inactive or admin"""
    form = AdminUserForm()
    if not form.validate_on_submit():
        return form_error_response(form)

    user = User(
        name=sanitize_input(form.name.data),
        email=form.email.data.strip().lower(),
        role=form.role.data,
        is_active=form.is_active.data,
    )
    user.set_password(form.password.data)
    db.session.add(user)
    db.session.commit()
    logger.info(f"User {user.email} created by {current_user.email}")

    return jsonify(user.to_dict()), 201


@bp.route("/admin/users/<int:user_id>")
@login_required
@admin_required
def get_user(user_id):
    return jsonify(db.get_or_404(User, user_id).to_dict())


@bp.route("/admin/users/<int:user_id>", methods=["PUT"])
@login_required
@admin_required
def update_user(user_id):
    """Edit name, email and account status; omitted fields keep their value"""
    user = db.get_or_404(User, user_id)

    form = UserEditForm(obj=user, original_email=user.email)
    if not form.validate_on_submit():
        return form_error_response(form)

    if user.id == current_user.id and not form.is_active.data:
        return jsonify({"error": "You cannot deactivate your own account"}), 400

    user.name = sanitize_input(form.name.data)
    user.email = form.email.data.strip().lower()
    user.is_active = form.is_active.data
    db.session.commit()
    logger.info(f"User {user.email} updated by {current_user.email}")

    return jsonify(user.to_dict())


@bp.route("/admin/users/<int:user_id>/role", methods=["PATCH"])
@login_required
@admin_required
def change_role(user_id):
    user = db.get_or_404(User, user_id)

    form = RoleForm()
    if not form.validate_on_submit():
        return form_error_response(form)

    if user.is_admin and form.role.data != ROLE_ADMIN:
        admins = User.query.filter_by(role=ROLE_ADMIN).count()
        if admins <= 1:
            return jsonify({"error": "Cannot demote the last administrator"}), 400

    user.role = form.role.data
    db.session.commit()
    logger.info(f"User {user.email} role set to {user.role} by {current_user.email}")

    return jsonify(user.to_dict())


@bp.route("/admin/users/<int:user_id>", methods=["DELETE"])
@login_required
@admin_required
def delete_user(user_id):
    user = db.get_or_404(User, user_id)

    if user.id == current_user.id:
        return jsonify({"error": "You cannot delete your own account"}), 400

    service = get_pool_service()
    owned = [pool.name for pool in service.list_pools() if pool.created_by == user.id]
    if owned:
        return (
            jsonify(
                {
                    "error": "User still owns quinielas; delete them first",
                    "quinielas": owned,
                }
            ),
            400,
        )

    removed = service.remove_user_everywhere(user.id)
    db.session.delete(user)
    db.session.commit()
    logger.info(
        f"User {user.email} deleted by {current_user.email} "
        f"(removed from {removed} quinielas)"
    )

    return jsonify({"message": "User deleted successfully", "quinielas_left": removed})
