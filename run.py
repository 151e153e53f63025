from quiniela import create_app, db
from quiniela.models import Match, Participant, Prediction, Quiniela, User
from quiniela.services.pool_service import get_pool_service

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "User": User,
        "Quiniela": Quiniela,
        "Match": Match,
        "Participant": Participant,
        "Prediction": Prediction,
        "pools": get_pool_service,
    }


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=app.config.get("DEBUG", False))
