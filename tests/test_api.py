from datetime import timedelta

import pytest

from tests.conftest import create_user, login

DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


@pytest.fixture
def quiniela(ana_client, luis_id, next_week):
    """Pool created by Ana with two matches; Luis has joined"""
    pool = ana_client.post("/api/quinielas", json={"name": "Mundial"}).get_json()

    for home, away, days in [("Mexico", "Canada", 0), ("Spain", "Japan", 1)]:
        date = next_week + timedelta(days=days)
        response = ana_client.post(
            f"/api/quinielas/{pool['id']}/matches",
            json={"home_team": home, "away_team": away, "date": date.strftime(DATE_FORMAT)},
        )
        assert response.status_code == 201, response.get_json()

    return ana_client.get(f"/api/quinielas/{pool['id']}").get_json()


@pytest.fixture
def joined(quiniela, luis_client):
    response = luis_client.post(f"/api/quinielas/{quiniela['id']}/join")
    assert response.status_code == 200
    return quiniela


def predict(client, pool_id, match_id, home, away):
    return client.put(
        f"/api/quinielas/{pool_id}/predictions",
        json={"match_id": match_id, "home_score": home, "away_score": away},
    )


def record(client, pool_id, match_id, home, away):
    return client.put(
        f"/api/quinielas/{pool_id}/matches/{match_id}/result",
        json={"home_score": home, "away_score": away},
    )


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.get_json()["status"] == "healthy"
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_scoring_rules(client):
    rules = client.get("/scoring-rules").get_json()

    assert rules == {
        "exact_score": 4,
        "away_win": 3,
        "draw": 2,
        "home_win": 1,
        "wrong_outcome": 0,
    }


def test_create_and_list(ana_client, quiniela):
    pools = ana_client.get("/api/quinielas").get_json()

    assert [pool["name"] for pool in pools] == ["Mundial"]
    assert pools[0]["creator_name"] == "Ana"
    assert pools[0]["can_edit"] is True
    assert pools[0]["is_participant"] is False
    assert len(quiniela["matches"]) == 2
    assert all(match["home_score"] is None for match in quiniela["matches"])


def test_create_needs_a_name(ana_client):
    response = ana_client.post("/api/quinielas", json={"name": ""})

    assert response.status_code == 400
    assert "name" in response.get_json()["fields"]


def test_unknown_pool_is_404(ana_client):
    response = ana_client.get("/api/quinielas/does-not-exist")

    assert response.status_code == 404
    assert "not found" in response.get_json()["error"]


def test_only_editors_manage_matches(joined, luis_client):
    pool_id = joined["id"]
    match_id = joined["matches"][0]["id"]

    assert luis_client.post(
        f"/api/quinielas/{pool_id}/matches",
        json={"home_team": "Brazil", "away_team": "Chile", "date": "2030-06-20T18:00:00"},
    ).status_code == 403
    assert record(luis_client, pool_id, match_id, 1, 0).status_code == 403
    assert luis_client.delete(f"/api/quinielas/{pool_id}").status_code == 403
    assert luis_client.post(f"/api/quinielas/{pool_id}/calculate").status_code == 403


def test_match_validation(ana_client, quiniela):
    url = f"/api/quinielas/{quiniela['id']}/matches"

    response = ana_client.post(
        url, json={"home_team": "Mexico", "away_team": "Mexico", "date": "2030-06-20"}
    )
    assert response.status_code == 400
    assert "away_team" in response.get_json()["fields"]

    response = ana_client.post(
        url, json={"home_team": "Mexico", "away_team": "Canada", "date": "tomorrow"}
    )
    assert response.status_code == 400
    assert "date" in response.get_json()["fields"]


def test_update_match(ana_client, quiniela):
    match_id = quiniela["matches"][0]["id"]

    response = ana_client.patch(
        f"/api/quinielas/{quiniela['id']}/matches/{match_id}",
        json={"home_team": "México"},
    )

    assert response.status_code == 200
    assert response.get_json()["match"]["home_team"] == "México"
    assert response.get_json()["match"]["away_team"] == "Canada"


def test_prediction_and_result_flow(ana_client, luis_client, luis_id, joined):
    pool_id = joined["id"]
    first, second = (match["id"] for match in joined["matches"])

    response = predict(luis_client, pool_id, first, 2, 1)
    assert response.status_code == 200
    assert response.get_json()["participant"]["points"] == 0
    assert predict(luis_client, pool_id, second, 0, 0).status_code == 200

    response = record(ana_client, pool_id, first, 2, 1)
    assert response.status_code == 200
    assert response.get_json()["leaderboard"] == [
        {"position": 1, "user_id": luis_id, "name": "Luis", "points": 4}
    ]

    board = luis_client.get(f"/api/quinielas/{pool_id}/leaderboard").get_json()
    assert board["winners"] == [luis_id]

    predictions = luis_client.get(f"/api/quinielas/{pool_id}/predictions").get_json()
    entry = predictions["participants"][0]
    assert entry["name"] == "Luis"
    assert {p["match_id"]: p["points"] for p in entry["predictions"]} == {
        first: 4,
        second: None,
    }

    # Clearing the result takes the points away again
    response = ana_client.delete(f"/api/quinielas/{pool_id}/matches/{first}/result")
    assert response.status_code == 200
    assert response.get_json()["match"]["home_score"] is None
    assert response.get_json()["leaderboard"][0]["points"] == 0


@pytest.mark.parametrize(
    "home, away",
    [(-1, 0), (1.5, 0), ("two", 0), (True, 0), (None, 1)],
)
def test_invalid_scores_are_rejected(luis_client, joined, home, away):
    match_id = joined["matches"][0]["id"]

    response = predict(luis_client, joined["id"], match_id, home, away)

    assert response.status_code == 400
    assert "home_score" in response.get_json()["fields"]


def test_must_join_before_predicting(ana_client, quiniela):
    response = predict(ana_client, quiniela["id"], quiniela["matches"][0]["id"], 1, 0)

    assert response.status_code == 400
    assert "Join" in response.get_json()["error"]


def test_join_and_leave(ana_client, luis_client, joined):
    pool_id = joined["id"]

    assert luis_client.post(f"/api/quinielas/{pool_id}/join").status_code == 400
    assert luis_client.post(f"/api/quinielas/{pool_id}/leave").status_code == 200
    assert luis_client.post(f"/api/quinielas/{pool_id}/leave").status_code == 400

    # The creator may join but never leave
    assert ana_client.post(f"/api/quinielas/{pool_id}/join").status_code == 200
    response = ana_client.post(f"/api/quinielas/{pool_id}/leave")
    assert response.status_code == 400
    assert "creator" in response.get_json()["error"]


def test_remove_participant(ana_client, luis_client, luis_id, joined):
    pool_id = joined["id"]

    response = ana_client.delete(f"/api/quinielas/{pool_id}/participants/{luis_id}")

    assert response.status_code == 200
    assert response.get_json()["quiniela"]["participants"] == []
    assert ana_client.delete(
        f"/api/quinielas/{pool_id}/participants/{luis_id}"
    ).status_code == 400


def test_delete_match_removes_its_points(ana_client, luis_client, joined):
    pool_id = joined["id"]
    first, second = (match["id"] for match in joined["matches"])
    predict(luis_client, pool_id, first, 1, 0)
    predict(luis_client, pool_id, second, 1, 3)
    record(ana_client, pool_id, first, 1, 0)
    record(ana_client, pool_id, second, 0, 2)

    response = ana_client.delete(f"/api/quinielas/{pool_id}/matches/{first}")

    assert response.status_code == 200
    participant = response.get_json()["participants"][0]
    assert participant["points"] == 3
    assert [p["match_id"] for p in participant["predictions"]] == [second]


def test_replace_pool_checks_version(ana_client, luis_client, joined):
    pool_id = joined["id"]
    snapshot = ana_client.get(f"/api/quinielas/{pool_id}").get_json()

    # Someone else writes in between
    predict(luis_client, pool_id, snapshot["matches"][0]["id"], 1, 1)

    snapshot["name"] = "Mundial 2030"
    response = ana_client.put(f"/api/quinielas/{pool_id}", json=snapshot)
    assert response.status_code == 409

    fresh = ana_client.get(f"/api/quinielas/{pool_id}").get_json()
    fresh["name"] = "Mundial 2030"
    fresh["matches"][0]["home_score"] = 1
    fresh["matches"][0]["away_score"] = 1
    fresh["participants"][0]["points"] = 100

    response = ana_client.put(f"/api/quinielas/{pool_id}", json=fresh)
    assert response.status_code == 200
    assert response.get_json()["name"] == "Mundial 2030"
    assert response.get_json()["participants"][0]["points"] == 4
    assert response.get_json()["version"] == fresh["version"] + 1


def test_replace_pool_rejects_half_results(ana_client, quiniela):
    quiniela["matches"][0]["home_score"] = 2

    response = ana_client.put(f"/api/quinielas/{quiniela['id']}", json=quiniela)

    assert response.status_code == 400


@pytest.mark.parametrize(
    "field, value",
    [
        ("matches", ["not-a-match"]),
        ("participants", ["luis"]),
        ("participants", [{"user_id": 0, "predictions": ["2-1"]}]),
    ],
)
def test_replace_pool_rejects_malformed_items(ana_client, joined, field, value):
    pool = ana_client.get(f"/api/quinielas/{joined['id']}").get_json()
    pool[field] = value

    response = ana_client.put(f"/api/quinielas/{pool['id']}", json=pool)

    assert response.status_code == 400
    assert "must be an object" in response.get_json()["error"]


def test_replace_pool_rejects_unknown_users(ana_client, joined):
    pool = ana_client.get(f"/api/quinielas/{joined['id']}").get_json()
    pool["participants"].append({"user_id": 9999, "predictions": [], "points": 0})

    response = ana_client.put(f"/api/quinielas/{pool['id']}", json=pool)

    assert response.status_code == 400
    assert response.get_json()["user_ids"] == [9999]
    pool = ana_client.get(f"/api/quinielas/{joined['id']}").get_json()
    assert len(pool["participants"]) == 1


def test_pool_names_are_stored_as_typed(ana_client):
    response = ana_client.post("/api/quinielas", json={"name": " Liga A&B "})

    assert response.get_json()["name"] == "Liga A&B"


def test_calculate_and_delete(ana_client, quiniela):
    pool_id = quiniela["id"]

    response = ana_client.post(f"/api/quinielas/{pool_id}/calculate")
    assert response.status_code == 200
    assert response.get_json()["leaderboard"] == []

    assert ana_client.delete(f"/api/quinielas/{pool_id}").status_code == 200
    assert ana_client.get(f"/api/quinielas/{pool_id}").status_code == 404


def test_global_leaderboard_and_stats(ana_client, luis_client, luis_id, joined):
    pool_id = joined["id"]
    first = joined["matches"][0]["id"]
    predict(luis_client, pool_id, first, 0, 3)

    assert luis_client.get("/api/leaderboard").get_json()["leaderboard"][0]["total_points"] == 0

    # Recording a result invalidates the cached leaderboard
    record(ana_client, pool_id, first, 0, 1)
    board = luis_client.get("/api/leaderboard").get_json()["leaderboard"]
    assert board == [
        {"user_id": luis_id, "name": "Luis", "total_points": 3, "quinielas_participated": 1}
    ]

    response = luis_client.get("/api/stats/user")
    assert response.headers["Cache-Control"].startswith("no-store")
    stats = response.get_json()
    assert stats["total_points"] == 3
    assert stats["quinielas"][0]["position"] == 1


def test_admin_user_management(admin_client, ana_client, luis_client, ana_id, luis_id, joined):
    assert ana_client.get("/api/admin/users").status_code == 403

    users = admin_client.get("/api/admin/users").get_json()
    assert {user["email"] for user in users} == {
        "admin@quiniela.io",
        "ana@quiniela.io",
        "luis@quiniela.io",
    }

    response = admin_client.patch(f"/api/admin/users/{luis_id}/role", json={"role": "root"})
    assert response.status_code == 400
    response = admin_client.patch(f"/api/admin/users/{luis_id}/role", json={"role": "admin"})
    assert response.get_json()["role"] == "admin"

    # Ana still owns a quiniela
    response = admin_client.delete(f"/api/admin/users/{ana_id}")
    assert response.status_code == 400
    assert response.get_json()["quinielas"] == ["Mundial"]

    response = admin_client.delete(f"/api/admin/users/{luis_id}")
    assert response.status_code == 200
    assert response.get_json()["quinielas_left"] == 1

    pool = ana_client.get(f"/api/quinielas/{joined['id']}").get_json()
    assert pool["participants"] == []


def test_admin_creates_and_edits_accounts(app, admin_client, ana_client, admin_id, ana_id):
    new_user = {
        "name": "Marta",
        "email": "Marta@Quiniela.io",
        "password": "password123",
        "is_active": False,
    }
    assert ana_client.post("/api/admin/users", json=new_user).status_code == 403

    response = admin_client.post("/api/admin/users", json=new_user)
    assert response.status_code == 201
    marta = response.get_json()
    assert marta["email"] == "marta@quiniela.io"
    assert marta["role"] == "user"
    assert marta["is_active"] is False
    assert admin_client.post("/api/admin/users", json=new_user).status_code == 400

    # Deactivated accounts cannot log in
    response = app.test_client().post(
        "/auth/login", json={"email": "marta@quiniela.io", "password": "password123"}
    )
    assert response.status_code == 403

    assert admin_client.get(f"/api/admin/users/{marta['id']}").get_json() == marta
    assert admin_client.get("/api/admin/users/9999").status_code == 404

    response = admin_client.put(f"/api/admin/users/{marta['id']}", json={"is_active": True})
    assert response.status_code == 200
    assert response.get_json()["is_active"] is True
    assert response.get_json()["name"] == "Marta"
    login(app.test_client(), "marta@quiniela.io")

    response = admin_client.put(
        f"/api/admin/users/{ana_id}", json={"name": "Ana María", "email": "marta@quiniela.io"}
    )
    assert response.status_code == 400
    assert "email" in response.get_json()["fields"]

    response = admin_client.put(f"/api/admin/users/{ana_id}", json={"name": "Ana María"})
    assert response.get_json()["name"] == "Ana María"
    assert response.get_json()["email"] == "ana@quiniela.io"
    assert response.get_json()["is_active"] is True

    response = admin_client.put(f"/api/admin/users/{admin_id}", json={"is_active": False})
    assert response.status_code == 400


def test_admin_can_edit_any_pool(admin_client, quiniela):
    response = admin_client.patch(
        f"/api/quinielas/{quiniela['id']}/matches/{quiniela['matches'][0]['id']}",
        json={"away_team": "USA"},
    )

    assert response.status_code == 200


def test_file_storage_backend(file_app, next_week):
    create_user(file_app, "Ana", "ana@quiniela.io")
    client = file_app.test_client()
    login(client, "ana@quiniela.io")

    pool = client.post("/api/quinielas", json={"name": "Mundial"}).get_json()
    response = client.post(
        f"/api/quinielas/{pool['id']}/matches",
        json={
            "home_team": "Mexico",
            "away_team": "Canada",
            "date": next_week.strftime(DATE_FORMAT),
        },
    )
    assert response.status_code == 201

    client.post(f"/api/quinielas/{pool['id']}/join")
    match_id = response.get_json()["match"]["id"]
    assert predict(client, pool["id"], match_id, 3, 0).status_code == 200
    record(client, pool["id"], match_id, 3, 0)

    board = client.get(f"/api/quinielas/{pool['id']}/leaderboard").get_json()
    assert board["leaderboard"][0]["points"] == 4
