"""
Scoring Engine for the Quiniela application

Pure functions over pool records. Nothing here touches storage; the pool
service loads a snapshot, calls these functions and saves what they return.

Points per prediction:
    4 - exact score
    3 - correct away win, wrong score
    2 - correct draw, wrong score
    1 - correct home win, wrong score
    0 - wrong outcome, or match not decided yet
"""

import enum
from dataclasses import replace

EXACT_SCORE_POINTS = 4


class Outcome(enum.Enum):
    HOME = "home"
    AWAY = "away"
    DRAW = "draw"


OUTCOME_POINTS = {
    Outcome.HOME: 1,
    Outcome.DRAW: 2,
    Outcome.AWAY: 3,
}


def classify(home_score, away_score):
    """Categorical outcome of a score pair"""
    if home_score > away_score:
        return Outcome.HOME
    if home_score < away_score:
        return Outcome.AWAY
    return Outcome.DRAW


def score_prediction(prediction, match):
    """
    Calculate points for a single prediction.

    Args:
        prediction: PredictionRecord for ``match``
        match: MatchRecord, with or without a result

    Returns:
        int between 0 and 4
    """
    result = match.result
    if result is None:
        return 0

    if (
        prediction.home_score == result.home_score
        and prediction.away_score == result.away_score
    ):
        return EXACT_SCORE_POINTS

    predicted = classify(prediction.home_score, prediction.away_score)
    actual = classify(result.home_score, result.away_score)
    if predicted != actual:
        return 0

    return OUTCOME_POINTS[actual]


def recompute_participant(participant, matches):
    """
    Return a copy of ``participant`` with points recalculated against ``matches``.

    Predictions whose match is not in ``matches`` are dropped from the copy.
    """
    matches_by_id = {match.id: match for match in matches}

    kept = []
    total = 0
    for prediction in participant.predictions:
        match = matches_by_id.get(prediction.match_id)
        if match is None:
            continue
        kept.append(prediction)
        total += score_prediction(prediction, match)

    return replace(participant, predictions=tuple(kept), points=total)


def recompute_all(pool):
    """Recalculate every participant of ``pool``; matches are left untouched"""
    participants = tuple(
        recompute_participant(participant, pool.matches)
        for participant in pool.participants
    )
    return replace(pool, participants=participants)


def purge_match(pool, match_id):
    """Drop ``match_id`` from the pool along with every prediction for it"""
    return replace(
        pool,
        matches=tuple(m for m in pool.matches if m.id != match_id),
        participants=tuple(p.without_match(match_id) for p in pool.participants),
    )


def prediction_breakdown(participant, matches):
    """Points earned by each prediction, ``None`` while its match is undecided"""
    matches_by_id = {match.id: match for match in matches}
    breakdown = []
    for prediction in participant.predictions:
        match = matches_by_id.get(prediction.match_id)
        if match is None:
            continue
        breakdown.append(
            {
                **prediction.to_dict(),
                "points": (
                    score_prediction(prediction, match) if match.has_result else None
                ),
            }
        )
    return breakdown


def sort_participants_by_points(participants):
    """Highest total first; ties keep their original order"""
    return sorted(participants, key=lambda p: p.points, reverse=True)


def get_winners(participants):
    """All participants sharing the highest total (several on a tie)"""
    if not participants:
        return []
    highest = max(p.points for p in participants)
    return [p for p in participants if p.points == highest]
