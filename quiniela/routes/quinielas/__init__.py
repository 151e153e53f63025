from flask import Blueprint

bp = Blueprint("quinielas", __name__)

from quiniela.routes.quinielas import routes  # noqa: F401, E402
