from datetime import datetime, timezone

from flask import current_app, jsonify

from quiniela import limiter
from quiniela.routes.main import bp
from quiniela.utils.scoring import EXACT_SCORE_POINTS, OUTCOME_POINTS, Outcome


@bp.route("/health")
@limiter.exempt
def health():
    """Health check endpoint - exempt from rate limiting for monitoring systems"""
    return jsonify(
        {
            "status": "healthy",
            "storage": current_app.config.get("POOL_STORAGE", "database"),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


@bp.route("/scoring-rules")
def scoring_rules():
    """Point table shown to players next to the prediction form"""
    return jsonify(
        {
            "exact_score": EXACT_SCORE_POINTS,
            "away_win": OUTCOME_POINTS[Outcome.AWAY],
            "draw": OUTCOME_POINTS[Outcome.DRAW],
            "home_win": OUTCOME_POINTS[Outcome.HOME],
            "wrong_outcome": 0,
        }
    )
