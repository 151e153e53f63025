from flask import Blueprint

bp = Blueprint("auth", __name__)

from quiniela.routes.auth import routes  # noqa: F401, E402
