"""
HTTP surface: routes, payloads and error status codes.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

import tournament_endpoints
from tournament_endpoints import router, get_store, to_http_exception
from tournament_errors import (
    ConstraintError, LifecycleError, NotFoundError, StoreError, ValidationError
)


@pytest.fixture
def client(store):
    app = FastAPI()
    app.include_router(router, prefix="/api")
    app.dependency_overrides[get_store] = lambda: store
    return TestClient(app)


def setup_tournament(client, players=16, fields_total=2):
    club_ids = [client.post("/api/clubs", json={"name": f"Club {c}"}).json()["id"] for c in range(4)]
    player_ids = [
        client.post("/api/players", json={
            "full_name": f"Player {i}", "ranking": 500 - i, "club_id": club_ids[i % 4]
        }).json()["id"]
        for i in range(players)
    ]
    tournament = client.post("/api/tournaments", json={"name": "Cup", "fields_total": fields_total}).json()
    response = client.put(f"/api/tournaments/{tournament['id']}/enrollments", json={"player_ids": player_ids})
    assert response.status_code == 200
    return tournament["id"], player_ids


class TestErrorMapping:

    @pytest.mark.parametrize("error, code", [
        (ValidationError("bad"), 400),
        (NotFoundError("missing"), 404),
        (LifecycleError("wrong phase"), 409),
        (ConstraintError("no referee"), 409),
        (StoreError("down"), 503),
    ])
    def test_status_codes(self, error, code):
        exc = to_http_exception(error)
        assert exc.status_code == code
        assert exc.detail == error.message

    def test_database_not_set(self, monkeypatch):
        monkeypatch.setattr(tournament_endpoints, "_db", None)
        app = FastAPI()
        app.include_router(router, prefix="/api")
        response = TestClient(app).get("/api/clubs")
        assert response.status_code == 503


class TestRoutes:

    def test_create_tournament(self, client):
        response = client.post("/api/tournaments", json={"name": "Cup", "fields_total": 3})
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "signup"
        assert body["fields_total"] == 3

    def test_invalid_fields_total(self, client):
        response = client.post("/api/tournaments", json={"name": "Cup", "fields_total": 0})
        assert response.status_code == 422

    def test_unknown_tournament(self, client):
        assert client.get("/api/tournaments/missing").status_code == 404

    def test_unknown_player_in_enrollment(self, client):
        tournament = client.post("/api/tournaments", json={"name": "Cup"}).json()
        response = client.put(f"/api/tournaments/{tournament['id']}/enrollments", json={"player_ids": ["ghost"]})
        assert response.status_code == 400

    def test_out_of_order_call(self, client):
        tid, _ = setup_tournament(client)
        response = client.post(f"/api/tournaments/{tid}/fields")
        assert response.status_code == 409

    def test_group_stage_flow(self, client):
        tid, _ = setup_tournament(client)

        assert client.post(f"/api/tournaments/{tid}/tiers").status_code == 200
        draw = client.post(f"/api/tournaments/{tid}/draw").json()
        assert len(draw["groups"]) == 4

        stage = client.post(f"/api/tournaments/{tid}/group-stage").json()
        assert stage["fixtures"] == 24

        fixtures = client.get(f"/api/tournaments/{tid}/fixtures", params={"stage": "group"}).json()
        assert len(fixtures) == 24
        assert all(f["result"] is None for f in fixtures)

        response = client.put(
            f"/api/tournaments/{tid}/fixtures/{fixtures[0]['id']}/result",
            json={"home_goals": 2, "away_goals": 0}
        )
        assert response.status_code == 200

        standings = client.get(f"/api/tournaments/{tid}/standings").json()
        assert sorted(standings) == ["A", "B", "C", "D"]
        assert sum(len(rows) for rows in standings.values()) == 2

    def test_knockout_flow(self, client):
        tid, player_ids = setup_tournament(client)
        client.post(f"/api/tournaments/{tid}/tiers")
        client.post(f"/api/tournaments/{tid}/draw")
        client.post(f"/api/tournaments/{tid}/rounds")

        counts = client.post(f"/api/tournaments/{tid}/knockout").json()
        assert (counts["gold_count"], counts["silver_count"]) == (8, 8)

        quarters = client.get(f"/api/tournaments/{tid}/fixtures", params={"stage": "gold"}).json()
        for quarter in quarters:
            response = client.put(
                f"/api/tournaments/{tid}/fixtures/{quarter['id']}/ko-result",
                json={"home_goals_ft": 1, "away_goals_ft": 1, "went_extra_time": True,
                      "et_home_goals": 2, "et_away_goals": 1}
            )
            assert response.status_code == 200

        gold = client.get(f"/api/tournaments/{tid}/fixtures", params={"stage": "gold"}).json()
        semis = [f for f in gold if f["round_name"] == "semi"]
        assert [(f["home_player_id"], f["away_player_id"]) for f in semis] == [
            (player_ids[0], player_ids[3]), (player_ids[1], player_ids[2])
        ]

    def test_missing_extra_time_score(self, client):
        tid, _ = setup_tournament(client)
        client.post(f"/api/tournaments/{tid}/tiers")
        client.post(f"/api/tournaments/{tid}/draw")
        client.post(f"/api/tournaments/{tid}/rounds")
        client.post(f"/api/tournaments/{tid}/knockout")
        quarter = client.get(f"/api/tournaments/{tid}/fixtures", params={"stage": "gold"}).json()[0]

        response = client.put(
            f"/api/tournaments/{tid}/fixtures/{quarter['id']}/ko-result",
            json={"home_goals_ft": 0, "away_goals_ft": 0, "went_extra_time": True}
        )
        assert response.status_code == 400

    def test_no_eligible_referee_is_a_conflict(self, client):
        tid, _ = setup_tournament(client, players=4, fields_total=1)
        client.post(f"/api/tournaments/{tid}/tiers")
        client.post(f"/api/tournaments/{tid}/draw")

        response = client.post(f"/api/tournaments/{tid}/group-stage")
        assert response.status_code == 409
