"""Tests for the user and attendee routes.

Covers:
- create with join (Event Joined email), duplicate emails within an event
- profile update, is-coming, availability, last-opened
- join requests, promote/demote, kick and leave (user row removed)
"""
from tests.test_api_events import _setup, create_test_event, create_test_user


class TestUserCreate:
    def test_join_sends_email_and_adds_attendee(self, client, notifier):
        organiser, attendee, event = _setup(client)
        assert attendee["role"] == "attendee"
        assert notifier.recipients("Event Joined") == [attendee["email"]]
        data = client.get(f"/api/attendees/{event['event_id']}").json()
        assert data["organiser"]["user_id"] == organiser["user_id"]
        assert [a["user_id"] for a in data["attendees"]] == [attendee["user_id"]]

    def test_unknown_role_falls_back_to_attendee(self, client):
        user = create_test_user(client, "Pat Person", role="superuser")
        assert user["role"] == "attendee"

    def test_join_with_taken_email(self, client):
        _, _, event = _setup(client)
        resp = client.post("/api/users/", json={
            "email": "alex@example.com", "name": "Alex Again", "fingerprint": "fp",
            "event_id": event["event_id"],
        })
        assert resp.status_code == 409

    def test_join_missing_event(self, client):
        resp = client.post("/api/users/", json={
            "email": "x@example.com", "name": "X", "fingerprint": "fp", "event_id": "missing",
        })
        assert resp.status_code == 404


class TestUserUpdate:
    def test_update_profile(self, client):
        _, attendee, event = _setup(client)
        resp = client.patch(f"/api/users/{attendee['user_id']}", json={
            "event_id": event["event_id"], "name": "Alexandra A", "email": "alexandra@example.com", "profile_pic": 5,
        })
        assert resp.status_code == 200, resp.text
        assert resp.json()["username"] == "Alexandra A"

    def test_email_used_by_organiser(self, client):
        organiser, attendee, event = _setup(client)
        resp = client.patch(f"/api/users/{attendee['user_id']}", json={
            "event_id": event["event_id"], "name": "Alex", "email": organiser["email"],
        })
        assert resp.status_code == 409
        assert resp.json()["detail"] == "Email is already used."

    def test_keeping_own_email_is_fine(self, client):
        _, attendee, event = _setup(client)
        resp = client.patch(f"/api/users/{attendee['user_id']}", json={
            "event_id": event["event_id"], "name": "Alex A", "email": attendee["email"],
        })
        assert resp.status_code == 200

    def test_is_coming(self, client):
        _, attendee, _ = _setup(client)
        resp = client.post(f"/api/users/{attendee['user_id']}/is-coming", json={"is_coming": True})
        assert resp.json()["is_coming"] is True

    def test_availability_set_and_clear(self, client):
        _, attendee, _ = _setup(client)
        uid = attendee["user_id"]
        resp = client.post(f"/api/users/{uid}/availability", json={"updates": [
            {"date": "2026-07-04", "status": "available"},
            {"date": "2026-07-05", "status": "nope"},
        ]})
        assert resp.json()["availability"] == {"2026-07-04": "available"}
        assert len(resp.json()["skipped"]) == 1

        resp = client.post(f"/api/users/{uid}/availability", json={"updates": [{"date": "2026-07-04", "status": None}]})
        assert resp.json()["availability"] == {}

        client.post(f"/api/users/{uid}/availability", json={"updates": [{"date": "2026-07-06", "status": "tentative"}]})
        assert client.delete(f"/api/users/{uid}/availability").json()["availability"] == {}

    def test_last_opened(self, client):
        _, attendee, _ = _setup(client)
        uid = attendee["user_id"]
        client.post(f"/api/users/{uid}/last-opened", json={"path": "/polls"})
        client.post(f"/api/users/{uid}/last-opened", json={"path": "/polls"})
        markers = client.get(f"/api/users/{uid}/last-opened").json()
        assert [m["path"] for m in markers] == ["/polls"]


class TestRequests:
    def test_request_and_reject(self, client):
        organiser, _, event = _setup(client)
        eid = event["event_id"]
        resp = client.post(f"/api/attendees/{eid}/requests", json={"email": "new@example.com", "username": "Newbie"})
        assert resp.status_code == 201
        assert resp.json()["status"] == "pending"

        resp = client.post(f"/api/attendees/{eid}/requests/decision", json={
            "actor_user_id": organiser["user_id"], "email": "new@example.com", "status": "rejected",
        })
        assert resp.json()["status"] == "rejected"
        assert client.get(f"/api/attendees/{eid}").json()["requests"][0]["status"] == "rejected"

    def test_decision_on_unknown_request(self, client):
        organiser, _, event = _setup(client)
        resp = client.post(f"/api/attendees/{event['event_id']}/requests/decision", json={
            "actor_user_id": organiser["user_id"], "email": "ghost@example.com", "status": "accepted",
        })
        assert resp.status_code == 404


class TestMembership:
    def test_promote_and_demote(self, client):
        organiser, attendee, event = _setup(client)
        body = {"actor_user_id": organiser["user_id"], "user_id": attendee["user_id"]}
        assert client.post(f"/api/attendees/{event['event_id']}/promote", json=body).json()["role"] == "admin"
        assert client.post(f"/api/attendees/{event['event_id']}/demote", json=body).json()["role"] == "attendee"

    def test_promote_non_member(self, client):
        organiser, _, event = _setup(client)
        outsider = create_test_user(client, "Out Sider", role="attendee")
        resp = client.post(f"/api/attendees/{event['event_id']}/promote", json={
            "actor_user_id": organiser["user_id"], "user_id": outsider["user_id"],
        })
        assert resp.status_code == 400

    def test_kick_removes_user(self, client):
        organiser, attendee, event = _setup(client)
        resp = client.post(f"/api/attendees/{event['event_id']}/kick", json={
            "actor_user_id": organiser["user_id"], "user_id": attendee["user_id"],
        })
        assert resp.status_code == 200
        assert client.get(f"/api/users/{attendee['user_id']}").status_code == 404
        assert client.get(f"/api/attendees/{event['event_id']}").json()["attendees"] == []

    def test_attendee_cannot_kick(self, client):
        organiser, attendee, event = _setup(client)
        other = create_test_user(client, "Sam Attendee", role="attendee", event_id=event["event_id"])
        resp = client.post(f"/api/attendees/{event['event_id']}/kick", json={
            "actor_user_id": attendee["user_id"], "user_id": other["user_id"],
        })
        assert resp.status_code == 403

    def test_leave_event(self, client):
        _, attendee, event = _setup(client)
        resp = client.post(f"/api/users/{attendee['user_id']}/leave", json={"event_id": event["event_id"]})
        assert resp.status_code == 200
        assert client.get(f"/api/users/{attendee['user_id']}").status_code == 404

    def test_leave_when_not_member(self, client):
        organiser = create_test_user(client)
        event = create_test_event(client, organiser["user_id"])
        stranger = create_test_user(client, "Sam Stranger", role="attendee")
        resp = client.post(f"/api/users/{stranger['user_id']}/leave", json={"event_id": event["event_id"]})
        assert resp.status_code == 400
        assert client.get(f"/api/users/{stranger['user_id']}").status_code == 200
