"""
Plain pool records shared by the scoring engine, the pool service and the
storage backends.

Records are immutable snapshots. A match result is either ``None`` (not yet
decided) or a ``MatchResult`` holding both goal counts, so a match can never
carry only one side of a score.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional, Tuple


def _check_goals(value, name):
    # bool is an int subclass; reject it along with fractions and negatives
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be a whole number, got {value!r}")
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")


def _naive_utc(value):
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _parse_datetime(value):
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _format_datetime(value):
    return value.isoformat() if value else None


def _require_mapping(data, kind):
    if not isinstance(data, dict):
        raise ValueError(f"{kind} must be an object, got {data!r}")
    return data


@dataclass(frozen=True)
class MatchResult:
    home_score: int
    away_score: int

    def __post_init__(self):
        _check_goals(self.home_score, "home_score")
        _check_goals(self.away_score, "away_score")


@dataclass(frozen=True)
class MatchRecord:
    id: str
    home_team: str
    away_team: str
    date: datetime
    result: Optional[MatchResult] = None

    def __post_init__(self):
        if not self.home_team or not self.away_team:
            raise ValueError("Both team names are required")
        if not isinstance(self.date, datetime):
            raise ValueError(f"Match {self.id} needs a date, got {self.date!r}")
        # Dates are kept as naive UTC
        object.__setattr__(self, "date", _naive_utc(self.date))

    @property
    def has_result(self):
        return self.result is not None

    def with_result(self, home_score, away_score):
        return replace(self, result=MatchResult(home_score, away_score))

    def without_result(self):
        return replace(self, result=None)

    def to_dict(self):
        return {
            "id": self.id,
            "home_team": self.home_team,
            "away_team": self.away_team,
            "date": _format_datetime(self.date),
            "home_score": self.result.home_score if self.result else None,
            "away_score": self.result.away_score if self.result else None,
        }

    @classmethod
    def from_dict(cls, data):
        _require_mapping(data, "match")
        home_score = data.get("home_score")
        away_score = data.get("away_score")
        if (home_score is None) != (away_score is None):
            raise ValueError("A match result needs both home_score and away_score")

        result = None
        if home_score is not None:
            result = MatchResult(home_score, away_score)

        return cls(
            id=data["id"],
            home_team=data["home_team"],
            away_team=data["away_team"],
            date=_parse_datetime(data["date"]),
            result=result,
        )


@dataclass(frozen=True)
class PredictionRecord:
    match_id: str
    home_score: int
    away_score: int

    def __post_init__(self):
        _check_goals(self.home_score, "home_score")
        _check_goals(self.away_score, "away_score")

    def to_dict(self):
        return {
            "match_id": self.match_id,
            "home_score": self.home_score,
            "away_score": self.away_score,
        }

    @classmethod
    def from_dict(cls, data):
        _require_mapping(data, "prediction")
        return cls(
            match_id=data["match_id"],
            home_score=data["home_score"],
            away_score=data["away_score"],
        )


@dataclass(frozen=True)
class ParticipantRecord:
    user_id: int
    predictions: Tuple[PredictionRecord, ...] = ()
    points: int = 0
    id: Optional[str] = None
    joined_at: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.user_id, bool) or not isinstance(self.user_id, int):
            raise ValueError(f"user_id must be an integer, got {self.user_id!r}")
        object.__setattr__(self, "joined_at", _naive_utc(self.joined_at))
        # Accept any iterable but store a tuple so the record stays hashable
        object.__setattr__(self, "predictions", tuple(self.predictions))
        match_ids = [p.match_id for p in self.predictions]
        if len(match_ids) != len(set(match_ids)):
            raise ValueError(
                f"Participant {self.user_id} has more than one prediction for a match"
            )

    def prediction_for(self, match_id):
        for prediction in self.predictions:
            if prediction.match_id == match_id:
                return prediction
        return None

    def with_prediction(self, prediction):
        """Return a copy with ``prediction`` added or replacing the one for its match"""
        predictions = [
            p for p in self.predictions if p.match_id != prediction.match_id
        ]
        predictions.append(prediction)
        return replace(self, predictions=tuple(predictions))

    def without_match(self, match_id):
        return replace(
            self,
            predictions=tuple(p for p in self.predictions if p.match_id != match_id),
        )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "points": self.points,
            "joined_at": _format_datetime(self.joined_at),
            "predictions": [p.to_dict() for p in self.predictions],
        }

    @classmethod
    def from_dict(cls, data):
        _require_mapping(data, "participant")
        return cls(
            id=data.get("id"),
            user_id=data["user_id"],
            points=data.get("points") or 0,
            joined_at=_parse_datetime(data.get("joined_at")),
            predictions=tuple(
                PredictionRecord.from_dict(p) for p in data.get("predictions", [])
            ),
        )


@dataclass(frozen=True)
class PoolRecord:
    id: str
    name: str
    created_by: int
    created_at: datetime
    matches: Tuple[MatchRecord, ...] = ()
    participants: Tuple[ParticipantRecord, ...] = ()
    version: int = 0
    updated_at: Optional[datetime] = field(default=None, compare=False)

    def __post_init__(self):
        if isinstance(self.created_by, bool) or not isinstance(self.created_by, int):
            raise ValueError(f"created_by must be an integer, got {self.created_by!r}")
        object.__setattr__(self, "created_at", _naive_utc(self.created_at))
        object.__setattr__(self, "matches", tuple(self.matches))
        object.__setattr__(self, "participants", tuple(self.participants))

        match_ids = [m.id for m in self.matches]
        if len(match_ids) != len(set(match_ids)):
            raise ValueError(f"Pool {self.id} has duplicate match ids")
        user_ids = [p.user_id for p in self.participants]
        if len(user_ids) != len(set(user_ids)):
            raise ValueError(f"Pool {self.id} has a user joined more than once")

    def get_match(self, match_id):
        for match in self.matches:
            if match.id == match_id:
                return match
        return None

    def get_participant(self, user_id):
        for participant in self.participants:
            if participant.user_id == user_id:
                return participant
        return None

    def is_participant(self, user_id):
        return self.get_participant(user_id) is not None

    def to_dict(self, include_predictions=True):
        participants = []
        for participant in self.participants:
            data = participant.to_dict()
            if not include_predictions:
                data.pop("predictions")
            participants.append(data)

        return {
            "id": self.id,
            "name": self.name,
            "created_by": self.created_by,
            "created_at": _format_datetime(self.created_at),
            "updated_at": _format_datetime(self.updated_at),
            "version": self.version,
            "matches": [m.to_dict() for m in self.matches],
            "participants": participants,
        }

    @classmethod
    def from_dict(cls, data):
        _require_mapping(data, "quiniela")
        return cls(
            id=data["id"],
            name=data["name"],
            created_by=data["created_by"],
            created_at=_parse_datetime(data["created_at"]),
            updated_at=_parse_datetime(data.get("updated_at")),
            version=data.get("version") or 0,
            matches=tuple(MatchRecord.from_dict(m) for m in data.get("matches", [])),
            participants=tuple(
                ParticipantRecord.from_dict(p) for p in data.get("participants", [])
            ),
        )
