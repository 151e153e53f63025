import logging

from flask import abort, jsonify, request
from flask_login import current_user, login_required

from quiniela import limiter
from quiniela.forms.auth import sanitize_input
from quiniela.forms.quinielas import (
    MatchForm,
    MatchUpdateForm,
    PredictionForm,
    QuinielaForm,
    ResultForm,
)
from quiniela.models import User
from quiniela.routes.quinielas import bp
from quiniela.services.pool_service import can_edit_pool, get_pool_service
from quiniela.utils.helpers import form_error_response
from quiniela.utils.records import PoolRecord
from quiniela.utils.scoring import sort_participants_by_points

logger = logging.getLogger(__name__)


def serialize_pool(pool, include_predictions=True):
    """Pool as JSON, with display names for the creator and participants"""
    names = User.names_by_id([pool.created_by] + [p.user_id for p in pool.participants])

    data = pool.to_dict(include_predictions=include_predictions)
    data["creator_name"] = names.get(pool.created_by)
    for participant in data["participants"]:
        participant["name"] = names.get(participant["user_id"])
    return data


def rank_participants(participants):
    """Leaderboard rows; participants on the same total share a position"""
    participants = sort_participants_by_points(participants)
    names = User.names_by_id([p.user_id for p in participants])

    rows = []
    previous_points = None
    position = 0
    for index, participant in enumerate(participants, start=1):
        if participant.points != previous_points:
            position = index
            previous_points = participant.points
        rows.append(
            {
                "position": position,
                "user_id": participant.user_id,
                "name": names.get(participant.user_id),
                "points": participant.points,
            }
        )
    return rows


def load_editable_pool(pool_id):
    """Load a pool the current user may edit, or abort with 403"""
    pool = get_pool_service().get_pool(pool_id)
    if not can_edit_pool(pool, current_user):
        logger.warning(
            f"User {current_user.id} tried to edit quiniela {pool_id} without permission"
        )
        abort(403)
    return pool


# Pools


@bp.route("", methods=["GET"])
@login_required
def list_quinielas():
    pools = get_pool_service().list_pools()
    return jsonify(
        [
            {
                **serialize_pool(pool, include_predictions=False),
                "can_edit": can_edit_pool(pool, current_user),
                "is_participant": pool.is_participant(current_user.id),
            }
            for pool in pools
        ]
    )


@bp.route("", methods=["POST"])
@login_required
@limiter.limit("20 per hour")
def create_quiniela():
    form = QuinielaForm()
    if not form.validate_on_submit():
        return form_error_response(form)

    pool = get_pool_service().create_pool(sanitize_input(form.name.data), current_user.id)
    return jsonify(serialize_pool(pool)), 201


@bp.route("/<pool_id>", methods=["GET"])
@login_required
def get_quiniela(pool_id):
    pool = get_pool_service().get_pool(pool_id)
    return jsonify(
        {
            **serialize_pool(pool),
            "can_edit": can_edit_pool(pool, current_user),
            "is_participant": pool.is_participant(current_user.id),
        }
    )


@bp.route("/<pool_id>", methods=["PUT"])
@login_required
def replace_quiniela(pool_id):
    """Replace the whole pool; the body must carry the version it was read at"""
    current = load_editable_pool(pool_id)

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Expected a JSON object"}), 400

    try:
        pool = PoolRecord.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        return jsonify({"error": f"Invalid quiniela: {e}"}), 400

    if pool.created_by != current.created_by and not current_user.is_admin:
        abort(403)

    user_ids = {pool.created_by} | {p.user_id for p in pool.participants}
    unknown = sorted(user_ids - set(User.names_by_id(user_ids)))
    if unknown:
        return jsonify({"error": "Unknown users", "user_ids": unknown}), 400

    pool = get_pool_service().replace_pool(pool_id, pool)
    return jsonify(serialize_pool(pool))


@bp.route("/<pool_id>", methods=["DELETE"])
@login_required
def delete_quiniela(pool_id):
    load_editable_pool(pool_id)
    get_pool_service().delete_pool(pool_id)
    return jsonify({"message": "Quiniela deleted successfully"})


# Matches


@bp.route("/<pool_id>/matches", methods=["POST"])
@login_required
def add_match(pool_id):
    load_editable_pool(pool_id)

    form = MatchForm()
    if not form.validate_on_submit():
        return form_error_response(form)

    pool, match = get_pool_service().add_match(
        pool_id, form.home_team.data, form.away_team.data, form.date.data
    )
    return jsonify({"match": match.to_dict(), "version": pool.version}), 201


@bp.route("/<pool_id>/matches/<match_id>", methods=["PATCH"])
@login_required
def update_match(pool_id, match_id):
    load_editable_pool(pool_id)

    form = MatchUpdateForm()
    if not form.validate_on_submit():
        return form_error_response(form)

    pool, match = get_pool_service().update_match(
        pool_id,
        match_id,
        home_team=form.home_team.data,
        away_team=form.away_team.data,
        date=form.date.data,
    )
    return jsonify({"match": match.to_dict(), "version": pool.version})


@bp.route("/<pool_id>/matches/<match_id>", methods=["DELETE"])
@login_required
def remove_match(pool_id, match_id):
    load_editable_pool(pool_id)
    pool = get_pool_service().remove_match(pool_id, match_id)
    return jsonify(serialize_pool(pool))


@bp.route("/<pool_id>/matches/<match_id>/result", methods=["PUT"])
@login_required
def record_result(pool_id, match_id):
    load_editable_pool(pool_id)

    form = ResultForm()
    if not form.validate_on_submit():
        return form_error_response(form)

    pool, match = get_pool_service().record_result(
        pool_id, match_id, form.home_score.data, form.away_score.data
    )
    return jsonify(
        {
            "match": match.to_dict(),
            "leaderboard": rank_participants(pool.participants),
            "version": pool.version,
        }
    )


@bp.route("/<pool_id>/matches/<match_id>/result", methods=["DELETE"])
@login_required
def clear_result(pool_id, match_id):
    load_editable_pool(pool_id)
    pool, match = get_pool_service().clear_result(pool_id, match_id)
    return jsonify(
        {
            "match": match.to_dict(),
            "leaderboard": rank_participants(pool.participants),
            "version": pool.version,
        }
    )


# Participants


@bp.route("/<pool_id>/join", methods=["POST"])
@login_required
def join(pool_id):
    pool, message = get_pool_service().join_pool(pool_id, current_user.id)
    if pool is None:
        return jsonify({"error": message}), 400
    return jsonify({"message": message, "quiniela": serialize_pool(pool)})


@bp.route("/<pool_id>/leave", methods=["POST"])
@login_required
def leave(pool_id):
    pool, message = get_pool_service().leave_pool(pool_id, current_user.id)
    if pool is None:
        return jsonify({"error": message}), 400
    return jsonify({"message": message})


@bp.route("/<pool_id>/participants/<int:user_id>", methods=["DELETE"])
@login_required
def remove_participant(pool_id, user_id):
    load_editable_pool(pool_id)
    pool, message = get_pool_service().remove_participant(pool_id, user_id)
    if pool is None:
        return jsonify({"error": message}), 400
    return jsonify({"message": message, "quiniela": serialize_pool(pool)})


# Predictions


@bp.route("/<pool_id>/predictions", methods=["PUT"])
@login_required
def submit_prediction(pool_id):
    form = PredictionForm()
    if not form.validate_on_submit():
        return form_error_response(form)

    pool, message = get_pool_service().submit_prediction(
        pool_id,
        current_user.id,
        form.match_id.data,
        form.home_score.data,
        form.away_score.data,
    )
    if pool is None:
        return jsonify({"error": message}), 400

    participant = pool.get_participant(current_user.id)
    return jsonify({"message": message, "participant": participant.to_dict()})


@bp.route("/<pool_id>/predictions", methods=["GET"])
@login_required
def all_predictions(pool_id):
    pool, entries = get_pool_service().predictions_view(pool_id)
    names = User.names_by_id([entry["user_id"] for entry in entries])
    for entry in entries:
        entry["name"] = names.get(entry["user_id"])

    return jsonify(
        {
            "matches": [match.to_dict() for match in pool.matches],
            "participants": entries,
        }
    )


# Results


@bp.route("/<pool_id>/calculate", methods=["POST"])
@login_required
def calculate(pool_id):
    load_editable_pool(pool_id)
    pool = get_pool_service().calculate_results(pool_id)
    return jsonify(
        {
            "message": "Results calculated",
            "leaderboard": rank_participants(pool.participants),
            "version": pool.version,
        }
    )


@bp.route("/<pool_id>/leaderboard", methods=["GET"])
@login_required
def leaderboard(pool_id):
    pool, ranked, winners = get_pool_service().leaderboard(pool_id)
    return jsonify(
        {
            "quiniela_id": pool.id,
            "leaderboard": rank_participants(ranked),
            "winners": [winner.user_id for winner in winners],
        }
    )
