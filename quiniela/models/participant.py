from datetime import datetime, timezone

from quiniela import db
from quiniela.utils.records import ParticipantRecord


class Participant(db.Model):
    __tablename__ = "participants"

    id = db.Column(db.String(32), primary_key=True)
    quiniela_id = db.Column(
        db.String(32), db.ForeignKey("quinielas.id"), nullable=False
    )
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    # Derived from predictions and match results, rewritten on every recompute
    points = db.Column(db.Integer, nullable=False, default=0)

    joined_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    user = db.relationship("User", backref=db.backref("participations", lazy="dynamic"))
    predictions = db.relationship(
        "Prediction",
        backref="participant",
        cascade="all, delete-orphan",
        order_by="Prediction.id",
    )

    __table_args__ = (
        db.UniqueConstraint("quiniela_id", "user_id", name="unique_quiniela_user"),
        db.Index("idx_participant_user", "user_id"),
    )

    def __repr__(self):
        return f"<Participant user_id={self.user_id} quiniela_id={self.quiniela_id}>"

    def apply_record(self, record):
        from .prediction import Prediction

        self.points = record.points
        if record.joined_at is not None:
            self.joined_at = record.joined_at

        existing = {p.match_id: p for p in self.predictions}
        predictions = []
        for prediction_record in record.predictions:
            prediction = existing.get(prediction_record.match_id)
            if prediction is None:
                prediction = Prediction(match_id=prediction_record.match_id)
            prediction.home_score = prediction_record.home_score
            prediction.away_score = prediction_record.away_score
            predictions.append(prediction)
        self.predictions = predictions

    def to_record(self):
        return ParticipantRecord(
            id=self.id,
            user_id=self.user_id,
            points=self.points or 0,
            joined_at=self.joined_at,
            predictions=tuple(p.to_record() for p in self.predictions),
        )
