from quiniela import db  # noqa: F401 - imported for model imports

from .match import Match
from .participant import Participant
from .prediction import Prediction
from .quiniela import Quiniela
from .user import User

__all__ = [
    "User",
    "Quiniela",
    "Match",
    "Participant",
    "Prediction",
]
