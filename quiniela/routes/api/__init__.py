from flask import Blueprint

bp = Blueprint("api", __name__)

from quiniela.routes.api import routes  # noqa: F401, E402
