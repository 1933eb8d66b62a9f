import pytest
from fastapi.testclient import TestClient

from planboard.main import app, get_storage


@pytest.fixture
def client(storage):
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


def create_board(client):
    project = client.post(
        "/v1/projects",
        json={"title": "Launch", "labels": [{"title": "bug", "color": "red"}]},
    ).json()
    todo = client.post(f"/v1/projects/{project['id']}/lists", json={"title": "Todo"}).json()
    cards = [
        client.post(f"/v1/lists/{todo['id']}/cards", json={"title": title}).json()
        for title in "ABCD"
    ]
    return project, todo, cards


def test_create_and_view(client):
    project, todo, cards = create_board(client)
    assert project["title"] == "Launch"
    assert cards[0]["projectId"] == project["id"]

    r = client.get(f"/v1/projects/{project['id']}")
    assert r.status_code == 200
    view = r.json()
    assert [label["title"] for label in view["labels"]] == ["bug"]
    assert [card["title"] for card in view["lists"][0]["cards"]] == ["A", "B", "C", "D"]
    assert view["lists"][0]["cards"][0]["status"] == "default"


def test_move_card(client):
    project, _, cards = create_board(client)
    r = client.post(f"/v1/cards/{cards[0]['id']}:move", json={"position": 2})
    assert r.status_code == 200
    assert r.json()["position"] == 2

    view = client.get(f"/v1/projects/{project['id']}").json()
    assert [card["title"] for card in view["lists"][0]["cards"]] == ["B", "C", "A", "D"]


def test_patch_card_and_status(client):
    _, _, cards = create_board(client)
    r = client.patch(f"/v1/cards/{cards[0]['id']}", json={"dueDate": "2024-01-09T00:00:00Z"})
    assert r.status_code == 200
    assert r.json()["dueDate"].startswith("2024-01-09T00:00:00")

    assert client.get(f"/v1/cards/{cards[0]['id']}").json()["status"] == "overdue"
    assert client.post(f"/v1/cards/{cards[0]['id']}:complete").json()["completed"] is True
    assert client.get(f"/v1/cards/{cards[0]['id']}").json()["status"] == "completed"


def test_labels_and_subtasks(client):
    project, _, cards = create_board(client)
    label_id = client.get(f"/v1/projects/{project['id']}").json()["labels"][0]["id"]
    card_id = cards[1]["id"]

    r = client.post(f"/v1/cards/{card_id}/labels", json={"labelId": label_id})
    assert r.status_code == 201
    r = client.post(f"/v1/cards/{card_id}/labels", json={"labelId": label_id})
    assert r.status_code == 409
    assert r.json()["code"] == "duplicate_association"

    subtask = client.post(f"/v1/cards/{card_id}/subtasks", json={"value": "check"}).json()
    assert client.post(f"/v1/subtasks/{subtask['id']}:toggle").json()["completed"] is True

    card = client.get(f"/v1/cards/{card_id}").json()
    assert [label["title"] for label in card["labels"]] == ["bug"]
    assert (card["subtasksCompleted"], card["subtasksTotal"]) == (1, 1)

    assert client.delete(f"/v1/cards/{card_id}/labels/{label_id}").status_code == 204
    assert client.get(f"/v1/cards/{card_id}").json()["labels"] == []


def test_archive_restore_delete(client):
    project, todo, cards = create_board(client)
    r = client.post(f"/v1/lists/{todo['id']}:archive")
    assert r.status_code == 200
    assert r.json()["archived"] is True
    assert client.get(f"/v1/projects/{project['id']}").json()["lists"] == []

    client.post(f"/v1/lists/{todo['id']}:restore")
    view = client.get(f"/v1/projects/{project['id']}").json()
    assert len(view["lists"][0]["cards"]) == 4

    assert client.delete(f"/v1/lists/{todo['id']}").status_code == 204
    r = client.get(f"/v1/cards/{cards[0]['id']}")
    assert r.status_code == 404
    assert r.json()["code"] == "not_found"


def test_projects_summary(client):
    create_board(client)
    summaries = client.get("/v1/projects").json()
    assert [(s["title"], s["listsCount"], s["cardsCount"]) for s in summaries] == [("Launch", 1, 4)]


def test_error_mapping(client):
    project, todo, cards = create_board(client)
    for i in range(4):
        client.post(f"/v1/projects/{project['id']}/lists", json={"title": f"list {i}"})

    r = client.post(f"/v1/projects/{project['id']}/lists", json={"title": "one too many"})
    assert r.status_code == 409
    assert r.json()["code"] == "limit_exceeded"

    r = client.post(f"/v1/cards/{cards[0]['id']}:move", json={"position": 9})
    assert r.status_code == 409
    assert r.json()["code"] == "invalid_position"

    for path in (f"/v1/lists/{todo['id']}:move", f"/v1/cards/{cards[0]['id']}:move"):
        r = client.post(path, json={"position": -1})
        assert r.status_code == 409
        assert r.json()["code"] == "invalid_position"

    r = client.post(f"/v1/projects/{project['id']}/labels", json={"title": "x", "color": "nope"})
    assert r.status_code == 422
    assert r.json()["code"] == "validation_error"

    r = client.patch(f"/v1/lists/{todo['id']}", json={"title": "   "})
    assert r.status_code == 422

    assert client.get("/v1/projects/999").status_code == 404
