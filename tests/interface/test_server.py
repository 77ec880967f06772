import pytest
from fastapi.testclient import TestClient

from taaltuig.application.config import AppConfig
from taaltuig.consts import VERSION
from taaltuig.server import create_app


@pytest.fixture
def client(tmp_path):
    config = AppConfig(data_file=tmp_path / "data.json", log_dir=tmp_path / "logs")
    with TestClient(create_app(config)) as client:
        yield client


def add_card(client, front="huis", back="house", **extra):
    response = client.post("/cards", json={"front": front, "back": back, **extra})
    assert response.status_code == 201
    return response.json()


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == VERSION


def test_get_version(client):
    response = client.get("/version")
    assert response.status_code == 200
    assert response.json() == {"version": VERSION}


def test_create_card_and_queue(client):
    created = add_card(client, category="Nouns")
    assert len(created["review_items"]) == 2

    response = client.get("/reviews/queue")

    assert response.status_code == 200
    data = response.json()
    assert data["stats"]["new_count"] == 2
    assert {item["id"] for item in data["queue"]} == {
        item["review_item_id"] for item in created["review_items"]
    }


def test_queue_is_per_user(client):
    add_card(client)

    response = client.get("/reviews/queue", headers={"X-User-Id": "someone-else"})

    assert response.json()["queue"] == []


def test_queue_rejects_negative_extra(client):
    assert client.get("/reviews/queue", params={"extra_new": -1}).status_code == 400


def test_queue_all(client):
    add_card(client)
    client.put("/settings", json={"new_cards_per_day": 0})

    assert client.get("/reviews/queue").json()["queue"] == []
    assert len(client.get("/reviews/queue", params={"all": True}).json()["queue"]) == 2


def test_submit_review(client):
    item_id = add_card(client)["review_items"][0]["review_item_id"]

    response = client.post("/reviews/submit", json={"review_item_id": item_id, "grade": 0})

    assert response.status_code == 200
    data = response.json()
    assert data["state"] == "LEARNING"
    assert data["result"]["step_index"] == 0
    assert data["interval_days"] == pytest.approx(1 / 1440)
    assert data["hold_in_session"] is True


def test_submit_easy_is_not_held(client):
    item_id = add_card(client)["review_items"][0]["review_item_id"]

    data = client.post(
        "/reviews/submit", json={"review_item_id": item_id, "grade": 4, "duration_ms": 900}
    ).json()

    assert data["state"] == "REVIEW"
    assert data["interval_days"] == 4
    assert data["hold_in_session"] is False


def test_submit_invalid_grade(client):
    item_id = add_card(client)["review_items"][0]["review_item_id"]

    response = client.post("/reviews/submit", json={"review_item_id": item_id, "grade": 1})

    assert response.status_code == 400
    assert "Invalid grade" in response.json()["detail"]


def test_submit_unknown_item(client):
    add_card(client)

    response = client.post("/reviews/submit", json={"review_item_id": "nope", "grade": 3})

    assert response.status_code == 404


def test_settings_get_and_update(client):
    response = client.get("/settings")
    assert response.status_code == 200
    assert response.json()["settings"]["new_cards_per_day"] == 20

    response = client.put("/settings", json={"new_cards_per_day": 5, "learning_steps": [1, 5]})
    assert response.status_code == 200
    settings = response.json()["settings"]
    assert settings["new_cards_per_day"] == 5
    assert settings["learning_steps"] == [1, 5]
    assert settings["user_id"] == "local"


def test_settings_validation(client):
    response = client.put("/settings", json={"lapse_new_interval": 101})

    assert response.status_code == 400


def test_reset_daily_reviews(client):
    item_id = add_card(client)["review_items"][0]["review_item_id"]
    client.post("/reviews/submit", json={"review_item_id": item_id, "grade": 3})

    response = client.post("/debug/reset-daily-reviews")

    assert response.status_code == 200
    assert response.json()["deleted_count"] == 1
    assert client.get("/reviews/queue").json()["stats"]["new_count"] == 2


def test_server_log_file_written(tmp_path, client):
    assert (tmp_path / "logs" / "server.log").exists()
