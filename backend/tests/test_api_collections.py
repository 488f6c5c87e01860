"""Tests for the poll, comment, link and to-do routes."""
from tests.test_api_events import _setup


class TestPolls:
    def _create(self, client, event_id, user_id, priority="level-1"):
        return client.post(f"/api/polls/{event_id}", json={
            "user_id": user_id, "title": "Which weekend?", "options": ["First", "Second"], "priority": priority,
        })

    def test_create_vote_and_toggle(self, client):
        organiser, attendee, event = _setup(client)
        eid = event["event_id"]
        resp = self._create(client, eid, organiser["user_id"])
        assert resp.status_code == 201, resp.text
        poll_id = resp.json()["poll_id"]

        vote = client.post(f"/api/polls/{eid}/{poll_id}/vote", json={"user_id": attendee["user_id"], "option": "First"})
        assert vote.json()["voted"] is True
        vote = client.post(f"/api/polls/{eid}/{poll_id}/vote", json={"user_id": attendee["user_id"], "option": "Second"})
        assert vote.json()["poll"]["options"] == {"First": [], "Second": [attendee["user_id"]]}

        polls = client.get(f"/api/polls/{eid}").json()
        assert polls[poll_id]["options"]["Second"] == [attendee["user_id"]]

    def test_invalid_priority(self, client):
        organiser, _, event = _setup(client)
        assert self._create(client, event["event_id"], organiser["user_id"], priority="urgent").status_code == 400

    def test_unknown_option(self, client):
        organiser, _, event = _setup(client)
        poll_id = self._create(client, event["event_id"], organiser["user_id"]).json()["poll_id"]
        resp = client.post(f"/api/polls/{event['event_id']}/{poll_id}/vote",
                           json={"user_id": organiser["user_id"], "option": "Third"})
        assert resp.status_code == 404

    def test_remove_vote_without_vote(self, client):
        organiser, _, event = _setup(client)
        poll_id = self._create(client, event["event_id"], organiser["user_id"]).json()["poll_id"]
        resp = client.post(f"/api/polls/{event['event_id']}/{poll_id}/remove-vote",
                           json={"user_id": organiser["user_id"], "option": "First"})
        assert resp.status_code == 400

    def test_only_creator_deletes(self, client):
        organiser, attendee, event = _setup(client)
        eid = event["event_id"]
        poll_id = self._create(client, eid, organiser["user_id"]).json()["poll_id"]
        resp = client.post(f"/api/polls/{eid}/{poll_id}/delete", json={"user_id": attendee["user_id"]})
        assert resp.status_code == 403
        resp = client.post(f"/api/polls/{eid}/{poll_id}/delete", json={"user_id": organiser["user_id"]})
        assert resp.status_code == 200
        assert client.get(f"/api/polls/{eid}").json() == {}


class TestComments:
    def test_add_reply_and_delete(self, client):
        organiser, attendee, event = _setup(client)
        eid = event["event_id"]
        parent = client.post(f"/api/comments/{eid}", json={"user_id": organiser["user_id"], "message": "Tents?"}).json()
        client.post(f"/api/comments/{eid}", json={
            "user_id": attendee["user_id"], "message": "I have one", "reply_to": parent["uuid"],
        })
        resp = client.post(f"/api/comments/{eid}/delete", json={"comment_ids": [parent["uuid"]]})
        assert resp.json() == {"removed": 1}
        remaining = client.get(f"/api/comments/{eid}").json()
        assert [c["reply_to"] for c in remaining] == [parent["uuid"]]

    def test_unknown_event(self, client):
        resp = client.post("/api/comments/missing", json={"user_id": "u", "message": "hi"})
        assert resp.status_code == 404


class TestLinks:
    def test_add_and_delete(self, client):
        organiser, _, event = _setup(client)
        eid = event["event_id"]
        resp = client.post(f"/api/links/{eid}", json={"user_id": organiser["user_id"], "link": "https://maps.example.com"})
        assert resp.status_code == 201
        assert client.delete(f"/api/links/{eid}", params={"link": "https://maps.example.com"}).json() == {"removed": 1}
        assert client.delete(f"/api/links/{eid}", params={"link": "https://maps.example.com"}).status_code == 404


class TestTodo:
    def test_task_round_trip_between_lists(self, client):
        organiser, _, event = _setup(client)
        eid = event["event_id"]
        task = client.post(f"/api/to-do/{eid}", json={"user_id": organiser["user_id"], "task": "Book cabin"}).json()

        moved = client.post(f"/api/to-do/{eid}/{task['task_id']}/done").json()
        assert moved == task
        assert client.get(f"/api/to-do/{eid}").json()["done"] == [task]

        client.post(f"/api/to-do/{eid}/{task['task_id']}/undo")
        assert client.get(f"/api/to-do/{eid}").json() == {"to_do": [task], "done": []}

        assert client.delete(f"/api/to-do/{eid}/{task['task_id']}").json() == {"removed": 1}

    def test_move_missing_task(self, client):
        _, _, event = _setup(client)
        assert client.post(f"/api/to-do/{event['event_id']}/nope/done").status_code == 404


class TestRescueNotice:
    def test_activity_on_warned_event_notifies_organiser(self, client, store, notifier):
        organiser, _, event = _setup(client)
        store.update_event(event["event_id"], lambda e: {"deleted_warning_sent": True}, touch=False)

        client.post(f"/api/links/{event['event_id']}", json={"user_id": organiser["user_id"], "link": "https://x.example"})
        assert notifier.recipients("Event Will Not Be Deleted") == [organiser["email"]]
        assert client.get(f"/api/events/{event['event_id']}").json()["deleted_warning_sent"] is False
