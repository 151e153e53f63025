from datetime import datetime

import pytest

from quiniela.utils.records import (
    MatchRecord,
    ParticipantRecord,
    PoolRecord,
    PredictionRecord,
)
from quiniela.utils.scoring import (
    Outcome,
    classify,
    get_winners,
    prediction_breakdown,
    purge_match,
    recompute_all,
    recompute_participant,
    score_prediction,
    sort_participants_by_points,
)

KICKOFF = datetime(2030, 6, 11, 18, 0)


def make_match(match_id="m1", result=None):
    match = MatchRecord(match_id, "Mexico", "Canada", KICKOFF)
    if result is not None:
        match = match.with_result(*result)
    return match


def make_pool(matches, participants):
    return PoolRecord(
        id="pool",
        name="Mundial",
        created_by=1,
        created_at=KICKOFF,
        matches=matches,
        participants=participants,
    )


def test_classify_draws():
    for goals in range(6):
        assert classify(goals, goals) is Outcome.DRAW


def test_classify_wins():
    assert classify(1, 0) is Outcome.HOME
    assert classify(5, 4) is Outcome.HOME
    assert classify(0, 1) is Outcome.AWAY
    assert classify(2, 7) is Outcome.AWAY


@pytest.mark.parametrize(
    "result, predicted, expected",
    [
        # Home win
        ((2, 1), (2, 1), 4),
        ((2, 1), (1, 0), 1),
        ((2, 1), (2, 2), 0),
        ((2, 1), (0, 1), 0),
        ((2, 1), (3, 0), 1),
        # Draw
        ((1, 1), (0, 0), 2),
        ((1, 1), (1, 1), 4),
        ((1, 1), (2, 0), 0),
        # Away win
        ((0, 2), (0, 2), 4),
        ((0, 2), (0, 1), 3),
        ((0, 2), (1, 1), 0),
    ],
)
def test_point_table(result, predicted, expected):
    match = make_match(result=result)
    prediction = PredictionRecord("m1", *predicted)

    assert score_prediction(prediction, match) == expected


def test_exact_score_beats_outcome_points():
    for result in [(0, 0), (3, 3), (4, 1), (0, 3)]:
        match = make_match(result=result)
        assert score_prediction(PredictionRecord("m1", *result), match) == 4


def test_undecided_match_scores_nothing():
    match = make_match()
    for predicted in [(0, 0), (2, 1), (1, 3)]:
        assert score_prediction(PredictionRecord("m1", *predicted), match) == 0


def test_recompute_scenario_with_undecided_match():
    matches = (make_match("A", result=(1, 0)), make_match("B"))
    participant = ParticipantRecord(
        user_id=7,
        predictions=[PredictionRecord("A", 1, 0), PredictionRecord("B", 2, 0)],
    )

    pool = recompute_all(make_pool(matches, (participant,)))

    assert pool.participants[0].points == 4
    assert pool.matches == matches


def test_recompute_ignores_stored_points():
    participant = ParticipantRecord(
        user_id=7, predictions=[PredictionRecord("A", 0, 0)], points=99
    )

    updated = recompute_participant(participant, [make_match("A", result=(2, 2))])

    assert updated.points == 2


def test_recompute_purges_orphaned_predictions():
    participant = ParticipantRecord(
        user_id=7,
        predictions=[PredictionRecord("A", 1, 0), PredictionRecord("gone", 1, 0)],
    )

    updated = recompute_participant(participant, [make_match("A", result=(1, 0))])

    assert updated.points == 4
    assert [p.match_id for p in updated.predictions] == ["A"]


def test_recompute_all_is_idempotent():
    matches = (
        make_match("A", result=(2, 1)),
        make_match("B", result=(0, 0)),
        make_match("C", result=(1, 3)),
    )
    participants = (
        ParticipantRecord(1, [PredictionRecord("A", 3, 0), PredictionRecord("C", 1, 3)]),
        ParticipantRecord(2, [PredictionRecord("B", 1, 1), PredictionRecord("C", 0, 0)]),
    )

    once = recompute_all(make_pool(matches, participants))
    twice = recompute_all(once)

    assert [p.points for p in once.participants] == [5, 2]
    assert [p.points for p in twice.participants] == [5, 2]


def test_points_equal_sum_of_prediction_scores():
    matches = (make_match("A", result=(2, 1)), make_match("B", result=(0, 2)))
    participant = ParticipantRecord(
        1, [PredictionRecord("A", 1, 0), PredictionRecord("B", 0, 1)]
    )

    updated = recompute_participant(participant, matches)

    by_id = {m.id: m for m in matches}
    expected = sum(score_prediction(p, by_id[p.match_id]) for p in participant.predictions)
    assert updated.points == expected == 4


def test_deleting_a_match_subtracts_its_points():
    matches = (make_match("A", result=(2, 1)), make_match("B", result=(1, 1)))
    participants = (
        ParticipantRecord(1, [PredictionRecord("A", 2, 1), PredictionRecord("B", 0, 0)]),
        ParticipantRecord(2, [PredictionRecord("B", 1, 1)]),
    )
    before = recompute_all(make_pool(matches, participants))

    after = recompute_all(purge_match(before, "A"))

    assert [m.id for m in after.matches] == ["B"]
    assert [p.points for p in before.participants] == [6, 4]
    assert [p.points for p in after.participants] == [6 - 4, 4]
    assert after.participants[0].prediction_for("A") is None


def test_prediction_breakdown_marks_undecided_matches():
    matches = (make_match("A", result=(0, 1)), make_match("B"))
    participant = ParticipantRecord(
        1, [PredictionRecord("A", 0, 3), PredictionRecord("B", 2, 2)]
    )

    breakdown = prediction_breakdown(participant, matches)

    assert breakdown == [
        {"match_id": "A", "home_score": 0, "away_score": 3, "points": 3},
        {"match_id": "B", "home_score": 2, "away_score": 2, "points": None},
    ]


def test_winners_include_ties():
    participants = [
        ParticipantRecord(1, points=3),
        ParticipantRecord(2, points=7),
        ParticipantRecord(3, points=7),
    ]

    ranked = sort_participants_by_points(participants)

    assert [p.user_id for p in ranked] == [2, 3, 1]
    assert [p.user_id for p in get_winners(ranked)] == [2, 3]
    assert get_winners([]) == []
