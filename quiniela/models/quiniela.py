from datetime import datetime, timezone

from quiniela import db
from quiniela.utils.helpers import generate_id
from quiniela.utils.records import PoolRecord


class Quiniela(db.Model):
    __tablename__ = "quinielas"

    id = db.Column(db.String(32), primary_key=True, default=generate_id)
    name = db.Column(db.String(100), nullable=False)

    # Creator and timestamps
    creator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Bumped by SQLAlchemy on every UPDATE; a flush from an older snapshot fails
    version = db.Column(db.Integer, nullable=False)

    # Relationships
    creator = db.relationship("User", backref=db.backref("created_quinielas", lazy="dynamic"))
    matches = db.relationship(
        "Match",
        backref="quiniela",
        cascade="all, delete-orphan",
        order_by="Match.match_date",
    )
    participants = db.relationship(
        "Participant",
        backref="quiniela",
        cascade="all, delete-orphan",
        order_by="Participant.joined_at",
    )

    __table_args__ = (
        db.Index("idx_quiniela_creator", "creator_id"),
        db.Index("idx_quiniela_created_at", "created_at"),
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Quiniela {self.name}>"

    def apply_record(self, pool):
        """Synchronise this row and its children with ``pool``"""
        from .match import Match
        from .participant import Participant

        self.name = pool.name
        self.creator_id = pool.created_by
        self.created_at = pool.created_at
        # Always dirty the row so the version counter moves with child changes
        self.updated_at = datetime.now(timezone.utc)

        existing_matches = {match.id: match for match in self.matches}
        matches = []
        for record in pool.matches:
            match = existing_matches.get(record.id) or Match(id=record.id)
            match.apply_record(record)
            matches.append(match)
        self.matches = matches

        existing_participants = {p.user_id: p for p in self.participants}
        participants = []
        for record in pool.participants:
            participant = existing_participants.get(record.user_id)
            if participant is None:
                participant = Participant(
                    id=record.id or generate_id(), user_id=record.user_id
                )
            participant.apply_record(record)
            participants.append(participant)
        self.participants = participants

    def to_record(self):
        return PoolRecord(
            id=self.id,
            name=self.name,
            created_by=self.creator_id,
            created_at=self.created_at,
            updated_at=self.updated_at,
            version=self.version,
            matches=tuple(match.to_record() for match in self.matches),
            participants=tuple(p.to_record() for p in self.participants),
        )
