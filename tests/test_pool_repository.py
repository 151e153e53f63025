from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from quiniela import db
from quiniela.models import Quiniela
from quiniela.services.exceptions import PoolNotFoundError, StalePoolError
from quiniela.services.pool_repository import (
    JsonFilePoolRepository,
    SQLAlchemyPoolRepository,
    build_pool_repository,
)
from quiniela.utils.records import (
    MatchRecord,
    ParticipantRecord,
    PoolRecord,
    PredictionRecord,
)
from tests.conftest import create_user

KICKOFF = datetime(2030, 6, 11, 18, 0)


@pytest.fixture(params=["database", "file"])
def repository(request, app, tmp_path):
    create_user(app, "Ana", "ana@quiniela.io")
    create_user(app, "Luis", "luis@quiniela.io")

    with app.app_context():
        if request.param == "database":
            yield SQLAlchemyPoolRepository(db)
        else:
            yield JsonFilePoolRepository(str(tmp_path / "pools.json"))


def new_pool(pool_id="p1", name="Mundial", created_at=KICKOFF):
    return PoolRecord(id=pool_id, name=name, created_by=1, created_at=created_at)


def test_save_assigns_first_version(repository):
    saved = repository.save_pool(new_pool())

    assert saved.version == 1
    assert repository.load_pool("p1") == saved


def test_full_pool_survives_a_round_trip(repository):
    pool = repository.save_pool(new_pool())
    match = MatchRecord("m1", "Mexico", "Canada", KICKOFF).with_result(2, 1)
    pool = replace(
        pool,
        matches=(match, MatchRecord("m2", "Spain", "Japan", KICKOFF + timedelta(days=1))),
        participants=(
            ParticipantRecord(
                2,
                [PredictionRecord("m1", 2, 1), PredictionRecord("m2", 0, 0)],
                points=4,
                id="part-2",
                joined_at=KICKOFF,
            ),
        ),
    )

    saved = repository.save_pool(pool)
    loaded = repository.load_pool("p1")

    assert saved.version == 2
    assert loaded.matches[0].result.home_score == 2
    assert not loaded.matches[1].has_result
    participant = loaded.get_participant(2)
    assert participant.points == 4
    assert participant.prediction_for("m2") == PredictionRecord("m2", 0, 0)


def test_removed_children_are_deleted(repository):
    pool = repository.save_pool(
        replace(
            new_pool(),
            matches=(MatchRecord("m1", "Mexico", "Canada", KICKOFF),),
            participants=(ParticipantRecord(2, [PredictionRecord("m1", 1, 0)], id="x"),),
        )
    )

    pool = repository.save_pool(
        replace(
            pool,
            matches=(),
            participants=(ParticipantRecord(2, id="x"),),
        )
    )

    loaded = repository.load_pool("p1")
    assert loaded.matches == ()
    assert loaded.get_participant(2).predictions == ()


def test_stale_snapshot_is_rejected(repository):
    original = repository.save_pool(new_pool())
    repository.save_pool(replace(original, name="Mundial 2030"))

    with pytest.raises(StalePoolError) as excinfo:
        repository.save_pool(replace(original, name="Lost update"))

    assert excinfo.value.status_code == 409
    assert repository.load_pool("p1").name == "Mundial 2030"


def test_saving_a_deleted_pool_fails(repository):
    pool = repository.save_pool(new_pool())
    repository.delete_pool("p1")

    with pytest.raises(PoolNotFoundError):
        repository.save_pool(pool)
    with pytest.raises(PoolNotFoundError):
        repository.load_pool("p1")
    with pytest.raises(PoolNotFoundError):
        repository.delete_pool("p1")


def test_list_pools_newest_first(repository):
    repository.save_pool(new_pool("old", created_at=datetime(2030, 1, 1)))
    repository.save_pool(new_pool("new", created_at=datetime(2030, 2, 1)))

    assert [pool.id for pool in repository.list_pools()] == ["new", "old"]


def test_backend_follows_configuration(app, file_app):
    assert isinstance(app.extensions["pool_repository"], SQLAlchemyPoolRepository)
    assert isinstance(file_app.extensions["pool_repository"], JsonFilePoolRepository)

    app.config["POOL_STORAGE"] = "s3"
    with pytest.raises(ValueError):
        build_pool_repository(app)


def test_conflicting_database_write_while_syncing_rows(app):
    create_user(app, "Ana", "ana@quiniela.io")

    with app.app_context():
        repository = SQLAlchemyPoolRepository(db)
        pool = repository.save_pool(new_pool())
        assert db.session.get(Quiniela, "p1").version == 1

        # Another writer bumps the row behind the loaded instance's back
        table = Quiniela.__table__
        db.session.execute(
            table.update().where(table.c.id == "p1").values(version=table.c.version + 1)
        )

        with pytest.raises(StalePoolError):
            repository.save_pool(replace(pool, name="Lost update"))

        stored = repository.load_pool("p1")
        assert stored.name == "Mundial"
        assert stored.version == 1
