from datetime import datetime, timezone

from quiniela import db
from quiniela.utils.records import PredictionRecord


class Prediction(db.Model):
    __tablename__ = "predictions"

    id = db.Column(db.Integer, primary_key=True)
    participant_id = db.Column(
        db.String(32), db.ForeignKey("participants.id"), nullable=False
    )
    match_id = db.Column(db.String(32), db.ForeignKey("matches.id"), nullable=False)

    # Predicted score
    home_score = db.Column(db.Integer, nullable=False)
    away_score = db.Column(db.Integer, nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("participant_id", "match_id", name="unique_participant_match"),
        db.CheckConstraint(
            "home_score >= 0 AND away_score >= 0", name="prediction_non_negative"
        ),
        db.Index("idx_prediction_match", "match_id"),
    )

    def __repr__(self):
        return f"<Prediction match_id={self.match_id} {self.home_score}-{self.away_score}>"

    def to_record(self):
        return PredictionRecord(
            match_id=self.match_id,
            home_score=self.home_score,
            away_score=self.away_score,
        )
