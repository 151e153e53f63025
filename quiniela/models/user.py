from datetime import datetime, timezone

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from quiniela import db

ROLE_ADMIN = "admin"
ROLE_USER = "user"


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    # Account status
    role = db.Column(db.String(20), nullable=False, default=ROLE_USER)
    is_active = db.Column(db.Boolean, default=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    last_login = db.Column(db.DateTime)

    __table_args__ = (
        db.CheckConstraint("role IN ('admin', 'user')", name="valid_role"),
        db.Index("idx_user_created_at", "created_at"),
    )

    def __repr__(self):
        return f"<User {self.email}>"

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def update_last_login(self):
        self.last_login = datetime.now(timezone.utc)
        db.session.commit()

    @staticmethod
    def get_by_email(email):
        return User.query.filter_by(email=email.strip().lower()).first()

    @staticmethod
    def names_by_id(user_ids=None):
        """Map user ids to display names, for leaderboards"""
        query = User.query
        if user_ids is not None:
            query = query.filter(User.id.in_(list(user_ids)))
        return {user.id: user.name for user in query.all()}

    def to_dict(self):
        """Convert user to dictionary for API responses"""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
