from datetime import datetime, timezone

from quiniela import db
from quiniela.utils.records import MatchRecord, MatchResult


class Match(db.Model):
    __tablename__ = "matches"

    id = db.Column(db.String(32), primary_key=True)
    quiniela_id = db.Column(
        db.String(32), db.ForeignKey("quinielas.id"), nullable=False
    )

    # Teams and kick-off (naive UTC)
    home_team = db.Column(db.String(100), nullable=False)
    away_team = db.Column(db.String(100), nullable=False)
    match_date = db.Column(db.DateTime, nullable=False)

    # Result, both set or both empty
    home_score = db.Column(db.Integer)
    away_score = db.Column(db.Integer)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Predictions belong to their participant; deleting the match takes them along
    predictions = db.relationship(
        "Prediction", backref="match", cascade="save-update, merge, delete"
    )

    __table_args__ = (
        db.Index("idx_match_quiniela_date", "quiniela_id", "match_date"),
        db.CheckConstraint(
            "(home_score IS NULL AND away_score IS NULL) OR "
            "(home_score IS NOT NULL AND away_score IS NOT NULL)",
            name="result_complete",
        ),
        db.CheckConstraint(
            "home_score IS NULL OR (home_score >= 0 AND away_score >= 0)",
            name="result_non_negative",
        ),
    )

    def __repr__(self):
        return f"<Match {self.home_team} vs {self.away_team}>"

    @property
    def has_result(self):
        return self.home_score is not None and self.away_score is not None

    def apply_record(self, record):
        self.home_team = record.home_team
        self.away_team = record.away_team
        self.match_date = record.date
        if record.result is None:
            self.home_score = None
            self.away_score = None
        else:
            self.home_score = record.result.home_score
            self.away_score = record.result.away_score

    def to_record(self):
        result = None
        if self.has_result:
            result = MatchResult(self.home_score, self.away_score)
        return MatchRecord(
            id=self.id,
            home_team=self.home_team,
            away_team=self.away_team,
            date=self.match_date,
            result=result,
        )
