"""Tests for the event routes.

Covers:
- create / fetch / list / update with optimistic locking
- confirm / cancel / reopen / chosen dates over HTTP, with authorization
- last-updated markers, availability overview, delete cascade
- error mapping (404, 400, 403, 409, 503 + Retry-After)
"""
from planner.errors import StoreUnavailable
from planner.models.event import Collection
from planner.services import mutators


def create_test_user(client, name="Olivia Organiser", email=None, role="organiser", event_id=None) -> dict:
    """Helper — POST /api/users and return response JSON."""
    payload = {
        "email": email or f"{name.split(' ')[0].lower()}@example.com",
        "name": name,
        "fingerprint": "fp-123",
        "role": role,
        "profile_pic": 3,
    }
    if event_id:
        payload["event_id"] = event_id
    resp = client.post("/api/users/", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_test_event(client, organiser_id: str, title: str = "Lake Trip") -> dict:
    """Helper — POST /api/events and return response JSON."""
    resp = client.post("/api/events/", json={
        "title": title,
        "description": "Weekend away",
        "location": {"city": "Keswick", "country": "UK"},
        "earliest_date": "2026-07-01",
        "latest_date": "2026-07-31",
        "duration": 2,
        "organiser_id": organiser_id,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


def _setup(client):
    organiser = create_test_user(client)
    event = create_test_event(client, organiser["user_id"])
    attendee = create_test_user(client, "Alex Attendee", role="attendee", event_id=event["event_id"])
    return organiser, attendee, event


class TestEventCreate:
    def test_create_event(self, client, notifier):
        organiser = create_test_user(client)
        data = create_test_event(client, organiser["user_id"])
        assert data["status"] == "pending"
        assert data["version"] == 1
        assert data["details_version"] == 1
        assert data["location"] == {"city": "Keswick", "country": "UK"}
        assert notifier.recipients("Event Created") == [organiser["email"]]

    def test_unknown_organiser(self, client):
        resp = client.post("/api/events/", json={
            "title": "Trip", "earliest_date": "2026-07-01", "latest_date": "2026-07-02",
            "organiser_id": "missing",
        })
        assert resp.status_code == 404

    def test_dates_out_of_order(self, client):
        organiser = create_test_user(client)
        resp = client.post("/api/events/", json={
            "title": "Trip", "earliest_date": "2026-07-05", "latest_date": "2026-07-01",
            "organiser_id": organiser["user_id"],
        })
        assert resp.status_code == 400

    def test_get_and_list(self, client):
        organiser, _, event = _setup(client)
        assert client.get(f"/api/events/{event['event_id']}").json()["title"] == "Lake Trip"
        listed = client.get("/api/events/", params={"organiser_id": organiser["user_id"]}).json()
        assert [e["event_id"] for e in listed] == [event["event_id"]]

    def test_get_missing(self, client):
        assert client.get("/api/events/nope").status_code == 404

    def test_organiser_of_another_event_cannot_create(self, client, store):
        organiser, _, first = _setup(client)
        resp = client.post("/api/events/", json={
            "title": "Second Trip", "earliest_date": "2026-08-01", "latest_date": "2026-08-02",
            "organiser_id": organiser["user_id"],
        })
        assert resp.status_code == 400
        assert [e.event_id for e in store.list_events()] == [first["event_id"]]

    def test_attendee_cannot_organise(self, client, store):
        _, attendee, first = _setup(client)
        resp = client.post("/api/events/", json={
            "title": "Side Trip", "earliest_date": "2026-08-01", "latest_date": "2026-08-02",
            "organiser_id": attendee["user_id"],
        })
        assert resp.status_code == 400
        assert [e.event_id for e in store.list_events()] == [first["event_id"]]

    def test_organiser_role_listed_as_attendee_elsewhere(self, client, store):
        _, _, first = _setup(client)
        other = create_test_user(client, "Casey Organiser")
        store.mutate(first["event_id"], Collection.attendees,
                     lambda current: mutators.add_attendee(current, other["user_id"]))
        resp = client.post("/api/events/", json={
            "title": "Side Trip", "earliest_date": "2026-08-01", "latest_date": "2026-08-02",
            "organiser_id": other["user_id"],
        })
        assert resp.status_code == 400
        assert resp.json()["detail"] == "User already belongs to an event"


class TestEventUpdate:
    def test_update_with_current_version(self, client):
        organiser, _, event = _setup(client)
        current = client.get(f"/api/events/{event['event_id']}").json()
        resp = client.put(f"/api/events/{event['event_id']}", json={
            "actor_user_id": organiser["user_id"], "title": "Lakes Weekend",
            "details_version": current["details_version"],
        })
        assert resp.status_code == 200, resp.text
        assert resp.json()["title"] == "Lakes Weekend"
        assert resp.json()["details_version"] == current["details_version"] + 1

    def test_stale_version_conflicts(self, client):
        organiser, _, event = _setup(client)
        first = client.put(f"/api/events/{event['event_id']}", json={
            "actor_user_id": organiser["user_id"], "title": "First", "details_version": 1,
        })
        assert first.status_code == 200
        resp = client.put(f"/api/events/{event['event_id']}", json={
            "actor_user_id": organiser["user_id"], "title": "Second", "details_version": 1,
        })
        assert resp.status_code == 409
        assert "Version mismatch" in resp.json()["detail"]
        assert resp.headers["Retry-After"] == "5"
        assert client.get(f"/api/events/{event['event_id']}").json()["title"] == "First"

    def test_collection_writes_keep_details_version(self, client):
        organiser, attendee, event = _setup(client)
        eid = event["event_id"]
        pinned = client.get(f"/api/events/{eid}").json()["details_version"]
        client.post(f"/api/comments/{eid}", json={"user_id": attendee["user_id"], "message": "Count me in"})
        client.post(f"/api/links/{eid}", json={"user_id": attendee["user_id"], "link": "https://maps.example.com"})
        resp = client.put(f"/api/events/{eid}", json={
            "actor_user_id": organiser["user_id"], "duration": 3, "details_version": pinned,
        })
        assert resp.status_code == 200, resp.text
        assert resp.json()["duration"] == 3

    def test_attendee_cannot_update(self, client):
        _, attendee, event = _setup(client)
        current = client.get(f"/api/events/{event['event_id']}").json()
        resp = client.put(f"/api/events/{event['event_id']}", json={
            "actor_user_id": attendee["user_id"], "title": "Mine now", "details_version": current["details_version"],
        })
        assert resp.status_code == 403

    def test_admin_can_update(self, client):
        organiser, attendee, event = _setup(client)
        client.post(f"/api/attendees/{event['event_id']}/promote", json={
            "actor_user_id": organiser["user_id"], "user_id": attendee["user_id"],
        })
        current = client.get(f"/api/events/{event['event_id']}").json()
        resp = client.put(f"/api/events/{event['event_id']}", json={
            "actor_user_id": attendee["user_id"], "duration": 3, "details_version": current["details_version"],
        })
        assert resp.status_code == 200, resp.text


class TestLifecycleRoutes:
    def test_confirm_cancel_reopen(self, client, notifier):
        organiser, attendee, event = _setup(client)
        eid = event["event_id"]
        resp = client.post(f"/api/events/{eid}/confirm", json={
            "actor_user_id": organiser["user_id"],
            "chosen_dates": ["2026-07-04", "2026-07-05"],
            "reminder_time": "2026-07-01T09:00:00Z",
        })
        assert resp.status_code == 200, resp.text
        assert resp.json()["status"] == "confirmed"
        assert resp.json()["chosen_dates"] == ["2026-07-04", "2026-07-05"]
        assert notifier.recipients("Event Confirmed") == [organiser["email"], attendee["email"]]

        status = client.get(f"/api/events/{eid}/status").json()
        assert status["status"] == "confirmed"

        resp = client.post(f"/api/events/{eid}/cancel", json={
            "actor_user_id": organiser["user_id"], "reason": "Storm warning",
        })
        assert resp.json()["status"] == "canceled"
        assert resp.json()["cancellation_reason"] == "Storm warning"

        resp = client.post(f"/api/events/{eid}/reopen", json={"actor_user_id": organiser["user_id"]})
        data = resp.json()
        assert data["status"] == "pending"
        assert data["chosen_dates"] is None and data["cancellation_reason"] is None

    def test_invalid_transition(self, client):
        organiser, _, event = _setup(client)
        resp = client.post(f"/api/events/{event['event_id']}/reopen", json={"actor_user_id": organiser["user_id"]})
        assert resp.status_code == 400

    def test_attendee_cannot_confirm(self, client):
        _, attendee, event = _setup(client)
        resp = client.post(f"/api/events/{event['event_id']}/confirm", json={
            "actor_user_id": attendee["user_id"], "chosen_dates": ["2026-07-04"],
        })
        assert resp.status_code == 403

    def test_toggle_chosen_dates(self, client):
        organiser, _, event = _setup(client)
        eid = event["event_id"]
        client.post(f"/api/events/{eid}/confirm", json={
            "actor_user_id": organiser["user_id"], "chosen_dates": ["2026-07-04"],
        })
        resp = client.post(f"/api/events/{eid}/chosen-dates", json={
            "actor_user_id": organiser["user_id"], "dates": ["2026-07-05", "2026-07-04"],
        })
        assert resp.json()["chosen_dates"] == ["2026-07-05"]


class TestMarkersAndOverview:
    def test_last_updated_upsert(self, client):
        _, _, event = _setup(client)
        eid = event["event_id"]
        client.post(f"/api/events/{eid}/last-updated", json={"path": "/polls"})
        client.post(f"/api/events/{eid}/last-updated", json={"path": "/links"})
        client.post(f"/api/events/{eid}/last-updated", json={"path": "/polls"})
        markers = client.get(f"/api/events/{eid}/last-updated").json()
        assert [m["path"] for m in markers] == ["/polls", "/links"]

    def test_availability_overview(self, client):
        organiser, attendee, event = _setup(client)
        client.post(f"/api/users/{attendee['user_id']}/availability", json={
            "updates": [{"date": "2026-07-04", "status": "available"}],
        })
        data = client.get(f"/api/events/{event['event_id']}/availability").json()
        assert data["organiser"]["user_id"] == organiser["user_id"]
        assert data["attendees"][0]["availability"] == {"2026-07-04": "available"}


class TestDelete:
    def test_organiser_delete_cascades_to_users(self, client, notifier):
        organiser, attendee, event = _setup(client)
        resp = client.delete(f"/api/events/{event['event_id']}", params={"actor_user_id": organiser["user_id"]})
        assert resp.status_code == 204
        assert client.get(f"/api/events/{event['event_id']}").status_code == 404
        assert client.get(f"/api/users/{attendee['user_id']}").status_code == 404
        assert client.get(f"/api/users/{organiser['user_id']}").status_code == 404
        assert notifier.recipients("Event Deleted") == [organiser["email"]]

    def test_attendee_cannot_delete(self, client):
        _, attendee, event = _setup(client)
        resp = client.delete(f"/api/events/{event['event_id']}", params={"actor_user_id": attendee["user_id"]})
        assert resp.status_code == 403


class TestErrorMapping:
    def test_store_unavailable_is_503_with_retry_after(self, client, store, monkeypatch):
        def down(*args, **kwargs):
            raise StoreUnavailable("Document store unavailable")

        monkeypatch.setattr(store, "load_collection", down)
        resp = client.get("/api/comments/any-event")
        assert resp.status_code == 503
        assert resp.headers["Retry-After"] == "5"

    def test_health(self, client):
        assert client.get("/api/health").json()["status"] == "ok"
