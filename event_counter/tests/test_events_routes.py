from event_counter.database.db_connection import get_db
from event_counter.database.models import User


def test_create_event_defaults(client, admin_headers):
    response = client.post("/api/events", json={"name": "Fall Fair"}, headers=admin_headers)

    assert response.status_code == 201
    event = response.get_json()
    assert event["id"].startswith("event_")
    assert event["name"] == "Fall Fair"
    assert event["description"] == ""
    assert event["isSpotlighted"] is False
    assert event["createdBy"] == "user_admin"
    assert event["adults"] == event["kids"] == event["newsletterSignups"] == event["volunteers"] == 0


def test_create_event_provisions_creator(client, admin_headers):
    client.post("/api/events", json={"name": "Fall Fair"}, headers=admin_headers)

    with get_db() as db:
        user = db.get(User, "user_admin")
        assert user is not None
        assert user.is_admin is True
        assert user.email == "user_admin@example.com"


def test_create_event_keeps_registered_creator(client, admin_headers):
    client.post("/api/auth/register", json={"userId": "user_admin", "name": "Pat"})
    response = client.post("/api/events", json={"name": "Fall Fair"}, headers=admin_headers)

    assert response.status_code == 201
    with get_db() as db:
        assert db.get(User, "user_admin").name == "Pat"


def test_create_event_requires_admin(client, user_headers):
    response = client.post("/api/events", json={"name": "Fall Fair"}, headers=user_headers)
    assert response.status_code == 403
    assert response.get_json()["error"] == "Only admins can create events"


def test_create_event_requires_user_id(client):
    response = client.post("/api/events", json={"name": "Fall Fair"}, headers={"X-Is-Admin": "true"})
    assert response.status_code == 401


def test_create_event_requires_name(client, admin_headers):
    response = client.post("/api/events", json={"description": "no name"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.get_json()["error"] == "Event name is required"


def test_create_spotlighted_event_clears_others(client, admin_headers, make_event):
    first = make_event("A", isSpotlighted=True)
    make_event("B", isSpotlighted=True)

    events = client.get("/api/events", headers=admin_headers).get_json()
    spotlighted = [e for e in events if e["isSpotlighted"]]
    assert [e["name"] for e in spotlighted] == ["B"]
    assert client.get(f"/api/events/{first['id']}").get_json()["isSpotlighted"] is False


def test_list_events_requires_user_id(client):
    response = client.get("/api/events")
    assert response.status_code == 401
    assert response.get_json()["error"] == "Unauthorized"


def test_list_events_admin_sees_all(client, admin_headers, make_event):
    make_event("A")
    make_event("B", isSpotlighted=True)

    events = client.get("/api/events", headers=admin_headers).get_json()
    assert sorted(e["name"] for e in events) == ["A", "B"]


def test_list_events_non_admin_sees_only_spotlight(client, user_headers, make_event):
    make_event("A")
    make_event("B", isSpotlighted=True)
    make_event("C")

    response = client.get("/api/events", headers=user_headers)
    assert response.status_code == 200
    events = response.get_json()
    assert [e["name"] for e in events] == ["B"]
    assert all(e["isSpotlighted"] for e in events)


def test_list_events_database_failure(client, user_headers, mocker):
    mocker.patch("event_counter.events_service.routes.get_db", side_effect=Exception("db down"))

    response = client.get("/api/events", headers=user_headers)
    assert response.status_code == 500
    assert response.get_json()["error"] == "Failed to fetch events"


def test_get_event(client, make_event):
    event = make_event()
    response = client.get(f"/api/events/{event['id']}")

    assert response.status_code == 200
    assert response.get_json()["name"] == "Fall Fair"


def test_get_event_not_found(client):
    response = client.get("/api/events/event_missing")
    assert response.status_code == 404
    assert response.get_json()["error"] == "Event not found"


def test_spotlight_moves_between_events(client, admin_headers, make_event):
    a = make_event("A")
    b = make_event("B")

    response = client.patch(f"/api/events/{a['id']}", json={"isSpotlighted": True}, headers=admin_headers)
    assert response.get_json()["isSpotlighted"] is True

    response = client.patch(f"/api/events/{b['id']}", json={"isSpotlighted": True}, headers=admin_headers)
    assert response.get_json()["isSpotlighted"] is True

    assert client.get(f"/api/events/{a['id']}").get_json()["isSpotlighted"] is False
    events = client.get("/api/events", headers=admin_headers).get_json()
    assert sum(e["isSpotlighted"] for e in events) == 1


def test_spotlight_sequence_keeps_at_most_one(client, admin_headers, make_event):
    ids = [make_event(name)["id"] for name in ("A", "B", "C")]

    for event_id, flag in [(ids[0], True), (ids[2], True), (ids[2], False), (ids[1], True), (ids[0], True)]:
        client.patch(f"/api/events/{event_id}", json={"isSpotlighted": flag}, headers=admin_headers)
        events = client.get("/api/events", headers=admin_headers).get_json()
        assert sum(e["isSpotlighted"] for e in events) <= 1


def test_non_admin_cannot_edit_details(client, user_headers, make_event):
    event = make_event()

    for body in ({"name": "Renamed"}, {"description": "x"}, {"isSpotlighted": True}, {"name": "Renamed", "adults": 3}):
        response = client.patch(f"/api/events/{event['id']}", json=body, headers=user_headers)
        assert response.status_code == 403
        assert response.get_json()["error"] == "Only admins can modify event details"

    unchanged = client.get(f"/api/events/{event['id']}").get_json()
    assert unchanged["name"] == "Fall Fair"
    assert unchanged["adults"] == 0
    assert unchanged["isSpotlighted"] is False


def test_non_admin_can_set_counters(client, user_headers, make_event):
    event = make_event()

    response = client.patch(
        f"/api/events/{event['id']}",
        json={"adults": 1, "kids": 2, "newsletterSignups": 3, "volunteers": 4},
        headers=user_headers,
    )

    assert response.status_code == 200
    data = response.get_json()
    assert (data["adults"], data["kids"], data["newsletterSignups"], data["volunteers"]) == (1, 2, 3, 4)


def test_counter_patch_is_last_write_wins(client, user_headers, make_event):
    event = make_event()
    client.patch(f"/api/events/{event['id']}", json={"adults": 9}, headers=user_headers)

    response = client.patch(f"/api/events/{event['id']}", json={"adults": 5}, headers=user_headers)
    assert response.get_json()["adults"] == 5


def test_patch_refreshes_updated_at(client, admin_headers, make_event):
    event = make_event()
    response = client.patch(f"/api/events/{event['id']}", json={"name": "Spring Fair"}, headers=admin_headers)

    data = response.get_json()
    assert data["name"] == "Spring Fair"
    assert data["updatedAt"] >= event["updatedAt"]


def test_patch_rejects_bad_types(client, admin_headers, make_event):
    event = make_event()

    for body in ({"adults": "5"}, {"kids": True}, {"isSpotlighted": "yes"}, {"name": ""}):
        response = client.patch(f"/api/events/{event['id']}", json=body, headers=admin_headers)
        assert response.status_code == 400


def test_patch_unknown_event(client, admin_headers):
    response = client.patch("/api/events/event_missing", json={"adults": 1}, headers=admin_headers)
    assert response.status_code == 404


def test_delete_event(client, admin_headers, make_event):
    event = make_event()

    response = client.delete(f"/api/events/{event['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert response.get_json() == {"success": True}
    assert client.get(f"/api/events/{event['id']}").status_code == 404


def test_delete_requires_admin(client, user_headers, make_event):
    event = make_event()

    response = client.delete(f"/api/events/{event['id']}", headers=user_headers)
    assert response.status_code == 403
    assert client.get(f"/api/events/{event['id']}").status_code == 200


def test_delete_unknown_event_succeeds(client, admin_headers):
    response = client.delete("/api/events/event_missing", headers=admin_headers)
    assert response.status_code == 200
    assert response.get_json() == {"success": True}


def test_increment_adds_to_stored_value(client, user_headers, make_event):
    event = make_event()
    client.patch(f"/api/events/{event['id']}", json={"kids": 4}, headers=user_headers)

    response = client.post(f"/api/events/{event['id']}/increment", json={"field": "kids"}, headers=user_headers)
    assert response.status_code == 200
    assert response.get_json()["kids"] == 5

    response = client.post(
        f"/api/events/{event['id']}/increment",
        json={"field": "kids", "amount": 3},
        headers=user_headers,
    )
    assert response.get_json()["kids"] == 8


def test_increment_validation(client, user_headers, make_event):
    event = make_event()

    bad_field = client.post(f"/api/events/{event['id']}/increment", json={"field": "cats"}, headers=user_headers)
    bad_amount = client.post(
        f"/api/events/{event['id']}/increment",
        json={"field": "kids", "amount": 0},
        headers=user_headers,
    )
    assert bad_field.status_code == 400
    assert bad_amount.status_code == 400


def test_increment_requires_user_id(client, make_event):
    event = make_event()

    response = client.post(
        f"/api/events/{event['id']}/increment",
        json={"field": "adults"},
        headers={"X-Is-Admin": "false"},
    )
    assert response.status_code == 401
    assert response.get_json()["error"] == "User ID is required"


def test_increment_unknown_event(client, user_headers):
    response = client.post("/api/events/event_missing/increment", json={"field": "adults"}, headers=user_headers)
    assert response.status_code == 404
