"""
Pool operations for the Quiniela application.

Every write follows the same path: load a snapshot from the repository, build
the changed snapshot, run the scoring engine where the change can move
points, and save. Totals are never patched by hand.
"""

import logging
from collections import defaultdict
from dataclasses import replace

from flask import current_app

from quiniela.services.exceptions import MatchNotFoundError, QuinielaServiceError
from quiniela.utils.cache_utils import invalidate_model_cache
from quiniela.utils.helpers import generate_id, predictions_allowed
from quiniela.utils.records import (
    MatchRecord,
    ParticipantRecord,
    PoolRecord,
    PredictionRecord,
)
from quiniela.utils.scoring import (
    get_winners,
    prediction_breakdown,
    purge_match,
    recompute_all,
    recompute_participant,
    sort_participants_by_points,
)
from quiniela.utils.timezone_utils import get_utc_time, to_naive_utc

logger = logging.getLogger(__name__)


def get_pool_service():
    """PoolService bound to the storage backend configured for this app"""
    return PoolService(current_app.extensions["pool_repository"])


def can_edit_pool(pool, user):
    """Site administrators and the pool's creator may edit it"""
    if user is None or not user.is_authenticated:
        return False
    return user.is_admin or pool.created_by == user.id


class PoolService:
    def __init__(self, repository):
        self.repository = repository

    # Pools

    def list_pools(self):
        return self.repository.list_pools()

    def get_pool(self, pool_id):
        return self.repository.load_pool(pool_id)

    def create_pool(self, name, creator_id):
        name = (name or "").strip()
        if not name:
            raise QuinielaServiceError("A quiniela needs a name")

        pool = PoolRecord(
            id=generate_id(),
            name=name,
            created_by=creator_id,
            created_at=to_naive_utc(get_utc_time()),
        )
        pool = self._save(pool)
        logger.info(f"Quiniela {pool.id} '{pool.name}' created by user {creator_id}")
        return pool

    def replace_pool(self, pool_id, pool):
        """
        Replace a whole pool with a client-supplied snapshot.

        The snapshot's version must match the stored one; totals are
        recalculated before saving so a client cannot write its own points.
        """
        if pool.id != pool_id:
            raise QuinielaServiceError("Quiniela id in the body does not match the URL")

        return self._recompute_and_save(pool, "replaced")

    def delete_pool(self, pool_id):
        self.repository.delete_pool(pool_id)
        invalidate_model_cache("leaderboard")
        logger.info(f"Quiniela {pool_id} deleted")

    # Matches

    def add_match(self, pool_id, home_team, away_team, date):
        pool = self.get_pool(pool_id)
        if home_team.strip().lower() == away_team.strip().lower():
            raise QuinielaServiceError("A team cannot play against itself")

        match = MatchRecord(
            id=generate_id(),
            home_team=home_team.strip(),
            away_team=away_team.strip(),
            date=to_naive_utc(date),
        )
        pool = self._save(replace(pool, matches=pool.matches + (match,)))
        logger.info(
            f"Match {match.id} ({match.home_team} vs {match.away_team}) added to quiniela {pool_id}"
        )
        return pool, match

    def update_match(self, pool_id, match_id, home_team=None, away_team=None, date=None):
        """Edit teams or date; results go through record_result/clear_result"""
        pool = self.get_pool(pool_id)
        match = self._get_match(pool, match_id)

        changes = {}
        if home_team:
            changes["home_team"] = home_team.strip()
        if away_team:
            changes["away_team"] = away_team.strip()
        if date is not None:
            changes["date"] = to_naive_utc(date)
        if not changes:
            return pool, match

        updated = replace(match, **changes)
        if updated.home_team.lower() == updated.away_team.lower():
            raise QuinielaServiceError("A team cannot play against itself")
        pool = self._save(self._with_match(pool, updated))
        return pool, updated

    def record_result(self, pool_id, match_id, home_score, away_score):
        """Enter or edit a result; every participant may have predicted it"""
        pool = self.get_pool(pool_id)
        match = self._get_match(pool, match_id).with_result(home_score, away_score)

        pool = self._recompute_and_save(
            self._with_match(pool, match),
            f"result {home_score}-{away_score} for match {match_id}",
        )
        return pool, match

    def clear_result(self, pool_id, match_id):
        """Put a match back to undecided and take its points away"""
        pool = self.get_pool(pool_id)
        match = self._get_match(pool, match_id)
        if not match.has_result:
            return pool, match

        match = match.without_result()
        pool = self._recompute_and_save(
            self._with_match(pool, match), f"result cleared for match {match_id}"
        )
        return pool, match

    def remove_match(self, pool_id, match_id):
        pool = self.get_pool(pool_id)
        self._get_match(pool, match_id)

        return self._recompute_and_save(
            purge_match(pool, match_id), f"match {match_id} removed"
        )

    # Participants

    def join_pool(self, pool_id, user_id):
        pool = self.get_pool(pool_id)
        if pool.is_participant(user_id):
            return None, "Already a participant of this quiniela"

        participant = ParticipantRecord(
            id=generate_id(),
            user_id=user_id,
            joined_at=to_naive_utc(get_utc_time()),
        )
        pool = self._save(replace(pool, participants=pool.participants + (participant,)))
        logger.info(f"User {user_id} joined quiniela {pool_id}")
        return pool, "Joined quiniela successfully"

    def leave_pool(self, pool_id, user_id):
        pool = self.get_pool(pool_id)
        if pool.created_by == user_id:
            return None, "The creator of a quiniela cannot leave it"
        if not pool.is_participant(user_id):
            return None, "Not a participant of this quiniela"

        pool = self._save(self._without_participant(pool, user_id))
        logger.info(f"User {user_id} left quiniela {pool_id}")
        return pool, "Left quiniela successfully"

    def remove_participant(self, pool_id, user_id):
        """Administrator removal; other participants keep their totals"""
        pool = self.get_pool(pool_id)
        if not pool.is_participant(user_id):
            return None, "User is not a participant of this quiniela"

        pool = self._save(self._without_participant(pool, user_id))
        logger.info(f"User {user_id} removed from quiniela {pool_id}")
        return pool, "Participant removed successfully"

    def remove_user_everywhere(self, user_id):
        """Drop a user from every pool they joined; returns how many pools changed"""
        removed = 0
        for pool in self.list_pools():
            if pool.is_participant(user_id):
                self._save(self._without_participant(pool, user_id))
                removed += 1
        if removed:
            logger.info(f"User {user_id} removed from {removed} quinielas")
        return removed

    # Predictions

    def submit_prediction(self, pool_id, user_id, match_id, home_score, away_score, now=None):
        pool = self.get_pool(pool_id)
        participant = pool.get_participant(user_id)
        if participant is None:
            return None, "Join the quiniela before making predictions"

        self._get_match(pool, match_id)
        if not predictions_allowed(pool.matches, now=now):
            return None, "Predictions are closed for this quiniela"

        prediction = PredictionRecord(match_id, home_score, away_score)
        participant = recompute_participant(
            participant.with_prediction(prediction), pool.matches
        )
        pool = self._save(self._with_participant(pool, participant))
        return pool, "Prediction saved"

    def predictions_view(self, pool_id):
        """Every participant's predictions with the points each one earned"""
        pool = self.get_pool(pool_id)
        return pool, [
            {
                "user_id": participant.user_id,
                "points": participant.points,
                "predictions": prediction_breakdown(participant, pool.matches),
            }
            for participant in sort_participants_by_points(pool.participants)
        ]

    # Results

    def calculate_results(self, pool_id):
        pool = self.get_pool(pool_id)
        return self._recompute_and_save(pool, "results calculated")

    def leaderboard(self, pool_id):
        pool = self.get_pool(pool_id)
        ranked = sort_participants_by_points(pool.participants)

        # Nobody wins a pool where nobody has scored yet
        winners = [p for p in get_winners(ranked) if p.points > 0]
        return pool, ranked, winners

    def global_leaderboard(self):
        """Total points per user across every pool"""
        totals = defaultdict(lambda: {"total_points": 0, "quinielas_participated": 0})
        for pool in self.list_pools():
            for participant in pool.participants:
                stats = totals[participant.user_id]
                stats["total_points"] += participant.points
                stats["quinielas_participated"] += 1

        leaderboard = [{"user_id": user_id, **stats} for user_id, stats in totals.items()]
        leaderboard.sort(key=lambda entry: entry["total_points"], reverse=True)
        return leaderboard

    def user_performance(self, user_id):
        """Standing of ``user_id`` in each pool they joined"""
        performance = []
        for pool in self.list_pools():
            participant = pool.get_participant(user_id)
            if participant is None:
                continue

            points = [p.points for p in pool.participants]
            performance.append(
                {
                    "quiniela_id": pool.id,
                    "quiniela_name": pool.name,
                    "points": participant.points,
                    "position": 1 + sum(1 for other in points if other > participant.points),
                    "participants": len(points),
                    "top_points": max(points),
                }
            )

        performance.sort(key=lambda entry: entry["points"], reverse=True)
        return performance

    def find_inconsistencies(self, pool):
        """Stored totals that differ from a fresh recomputation, and orphaned predictions"""
        match_ids = {match.id for match in pool.matches}
        expected = {p.user_id: p.points for p in recompute_all(pool).participants}

        problems = []
        for participant in pool.participants:
            orphaned = [
                p.match_id for p in participant.predictions if p.match_id not in match_ids
            ]
            if participant.points != expected[participant.user_id] or orphaned:
                problems.append(
                    {
                        "user_id": participant.user_id,
                        "stored_points": participant.points,
                        "expected_points": expected[participant.user_id],
                        "orphaned_match_ids": orphaned,
                    }
                )
        return problems

    # Helpers

    def _get_match(self, pool, match_id):
        match = pool.get_match(match_id)
        if match is None:
            raise MatchNotFoundError(pool.id, match_id)
        return match

    @staticmethod
    def _with_match(pool, match):
        return replace(
            pool,
            matches=tuple(match if m.id == match.id else m for m in pool.matches),
        )

    @staticmethod
    def _with_participant(pool, participant):
        return replace(
            pool,
            participants=tuple(
                participant if p.user_id == participant.user_id else p
                for p in pool.participants
            ),
        )

    @staticmethod
    def _without_participant(pool, user_id):
        return replace(
            pool,
            participants=tuple(p for p in pool.participants if p.user_id != user_id),
        )

    def _recompute_and_save(self, pool, reason):
        before = {p.user_id: p.points for p in pool.participants}
        pool = recompute_all(pool)
        changed = sum(1 for p in pool.participants if before.get(p.user_id) != p.points)

        pool = self._save(pool)
        logger.info(
            f"Recalculated quiniela {pool.id} ({reason}): "
            f"{len(pool.participants)} participants, {changed} totals changed"
        )
        return pool

    def _save(self, pool):
        saved = self.repository.save_pool(pool)
        invalidate_model_cache("leaderboard")
        return saved
