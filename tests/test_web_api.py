import unittest

from application.auth import TokenAuthority
from fakes import InMemoryLedgerStore
from interfaces.web.api import TOKEN_COOKIE, create_app


class WebApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryLedgerStore()
        self.authority = TokenAuthority("test-secret", max_age=3600)
        self.app = create_app(self.store, self.authority)
        self.client = self.app.test_client()

    def _register(self, client, username):
        response = client.post(
            "/api/register",
            json={"username": username, "email": f"{username}@example.com", "password": "secret1"},
        )
        self.assertEqual(response.status_code, 200)
        return response.get_json()["user"]["id"]

    def _bearer(self, user_id):
        return {"Authorization": f"Bearer {self.authority.issue_token(user_id)}"}

    def test_requests_without_token_are_rejected(self):
        for method, path in (
            ("get", "/api/sessions"),
            ("post", "/api/sessions"),
            ("get", "/api/stats"),
            ("get", "/api/bankroll"),
            ("get", "/api/settings"),
            ("get", "/api/player-notes"),
        ):
            response = getattr(self.client, method)(path)
            self.assertEqual(response.status_code, 401, path)
            self.assertIn("error", response.get_json())

    def test_invalid_bearer_token_is_rejected(self):
        response = self.client.get("/api/me", headers={"Authorization": "Bearer garbage"})
        self.assertEqual(response.status_code, 401)

    def test_register_sets_cookie_and_me_works(self):
        self._register(self.client, "alice")

        cookie = self.client.get_cookie(TOKEN_COOKIE)
        self.assertIsNotNone(cookie)
        self.assertTrue(cookie.http_only)

        response = self.client.get("/api/me")
        self.assertEqual(response.get_json()["user"]["username"], "alice")

    def test_login_and_logout(self):
        self._register(self.client, "alice")
        self.client.post("/api/logout")
        self.assertEqual(self.client.get("/api/me").status_code, 401)

        bad = self.client.post("/api/login", json={"username": "alice", "password": "wrong!"})
        self.assertEqual(bad.status_code, 401)

        good = self.client.post(
            "/api/login", json={"username": "alice@example.com", "password": "secret1"}
        )
        self.assertEqual(good.status_code, 200)
        self.assertEqual(self.client.get("/api/me").status_code, 200)

    def test_register_validation_errors(self):
        response = self.client.post("/api/register", json={"username": "alice"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["fields"], ["email", "password"])

    def test_session_lifecycle_keeps_bankroll_in_sync(self):
        user_id = self._register(self.client, "alice")
        headers = self._bearer(user_id)

        first = self.client.post(
            "/api/sessions",
            json={"date": "2024-05-01", "playTime": 3600, "games": 2, "earnings": 50},
            headers=headers,
        )
        self.assertEqual(first.status_code, 200)
        self.assertTrue(first.get_json()["success"])
        first_id = first.get_json()["session"]["id"]

        self.client.post(
            "/api/sessions", json={"date": "2024-05-02", "earnings": -20}, headers=headers
        )
        self.assertEqual(self.client.get("/api/bankroll", headers=headers).get_json()["amount"], 30)

        listing = self.client.get("/api/sessions", headers=headers).get_json()["sessions"]
        self.assertEqual([s["date"] for s in listing], ["2024-05-02", "2024-05-01"])

        deleted = self.client.delete(f"/api/sessions/{first_id}", headers=headers)
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(self.client.get("/api/bankroll", headers=headers).get_json()["amount"], -20)

        audit = self.client.get("/api/bankroll/audit", headers=headers).get_json()
        self.assertTrue(audit["consistent"])

    def test_invalid_session_payload(self):
        user_id = self._register(self.client, "alice")
        response = self.client.post(
            "/api/sessions", json={"date": "not a date"}, headers=self._bearer(user_id)
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["fields"], ["date"])

    def test_non_finite_json_numbers_are_rejected(self):
        user_id = self._register(self.client, "alice")
        headers = self._bearer(user_id)

        for body, field in (
            ('{"date": "2024-05-01", "earnings": 1e999}', "earnings"),
            ('{"date": "2024-05-01", "earnings": NaN}', "earnings"),
            ('{"date": "2024-05-01", "games": -Infinity}', "games"),
        ):
            response = self.client.post(
                "/api/sessions", data=body, content_type="application/json", headers=headers
            )
            self.assertEqual(response.status_code, 400, body)
            self.assertEqual(response.get_json()["fields"], [field])

        self.assertEqual(self.client.get("/api/bankroll", headers=headers).get_json()["amount"], 0)

    def test_cannot_delete_someone_elses_session(self):
        alice = self._register(self.app.test_client(), "alice")
        bob = self._register(self.app.test_client(), "bob")
        created = self.client.post(
            "/api/sessions", json={"date": "2024-05-01", "earnings": 40}, headers=self._bearer(bob)
        ).get_json()["session"]

        response = self.client.delete(f"/api/sessions/{created['id']}", headers=self._bearer(alice))

        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.client.get("/api/bankroll", headers=self._bearer(bob)).get_json()["amount"], 40)

    def test_user_id_in_body_is_ignored(self):
        alice = self._register(self.app.test_client(), "alice")
        bob = self._register(self.app.test_client(), "bob")

        self.client.post(
            "/api/sessions",
            json={"date": "2024-05-01", "earnings": 10, "user_id": bob, "userId": bob},
            headers=self._bearer(alice),
        )

        self.assertEqual(self.client.get("/api/sessions", headers=self._bearer(bob)).get_json()["sessions"], [])
        self.assertEqual(len(self.client.get("/api/sessions", headers=self._bearer(alice)).get_json()["sessions"]), 1)

    def test_stats_endpoint(self):
        user_id = self._register(self.client, "alice")
        headers = self._bearer(user_id)

        empty = self.client.get("/api/stats", headers=headers).get_json()
        self.assertTrue(all(value == 0 for value in empty.values()))

        self.client.post(
            "/api/sessions",
            json={"date": "2024-06-14", "playTime": 7200, "games": 4, "hands": 300, "earnings": 30},
            headers=headers,
        )
        report = self.client.get("/api/stats?asOf=2024-06-15T12:00:00Z", headers=headers).get_json()
        self.assertEqual(report["totalHours"], 2)
        self.assertEqual(report["globalHourlyRate"], 15)
        self.assertEqual(report["weekGames"], 4)
        self.assertEqual(report["weekROI"], 100)
        self.assertEqual(report["daysThisWeek"], 1)

        bad = self.client.get("/api/stats?asOf=soon", headers=headers)
        self.assertEqual(bad.status_code, 400)

    def test_player_notes_endpoints(self):
        user_id = self._register(self.client, "alice")
        headers = self._bearer(user_id)

        missing = self.client.post("/api/player-notes", json={"playerName": "V"}, headers=headers)
        self.assertEqual(missing.status_code, 400)

        created = self.client.post(
            "/api/player-notes",
            json={"playerName": "Villain", "category": "aggro", "noteText": "overbets rivers"},
            headers=headers,
        ).get_json()["note"]
        notes = self.client.get("/api/player-notes", headers=headers).get_json()["notes"]
        self.assertEqual(notes[0]["player_name"], "Villain")

        self.assertEqual(self.client.delete(f"/api/player-notes/{created['id']}", headers=headers).status_code, 200)
        self.assertEqual(self.client.delete(f"/api/player-notes/{created['id']}", headers=headers).status_code, 404)

    def test_settings_endpoints(self):
        user_id = self._register(self.client, "alice")
        headers = self._bearer(user_id)

        self.assertEqual(
            self.client.get("/api/settings", headers=headers).get_json()["settings"],
            {"weekly_goals": "", "session_notes": ""},
        )
        self.client.put("/api/settings", json={"weeklyGoals": "20h"}, headers=headers)
        self.assertEqual(
            self.client.get("/api/settings", headers=headers).get_json()["settings"],
            {"weekly_goals": "20h", "session_notes": ""},
        )

    def test_store_failure_is_a_generic_500(self):
        user_id = self._register(self.client, "alice")
        self.store.fail_on = ("increment", "bankroll")

        response = self.client.post(
            "/api/sessions", json={"date": "2024-05-01", "earnings": 5}, headers=self._bearer(user_id)
        )

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json(), {"error": "Internal server error"})
        self.store.fail_on = None
        self.assertEqual(self.client.get("/api/sessions", headers=self._bearer(user_id)).get_json()["sessions"], [])

    def test_unknown_route_is_json_404(self):
        response = self.client.get("/api/nope")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json(), {"error": "Not found"})


if __name__ == "__main__":
    unittest.main()
