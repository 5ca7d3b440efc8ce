import os
import unittest
from datetime import datetime, timezone
from unittest import mock

from app import app
from auth_utils import generate_admin_token
from models import SpotifyConfig


class RouteTestCase(unittest.TestCase):
    def setUp(self):
        env = mock.patch.dict(os.environ, {"JWT_SECRET": "test-secret", "ADMIN_PASSWORD": "hunter2"})
        env.start()
        self.addCleanup(env.stop)
        os.environ.pop("CRON_SECRET", None)
        os.environ.pop("CANDIDATE_DELAY_SECONDS", None)

        self.client = app.test_client()
        self.admin_headers = {"Authorization": f"Bearer {generate_admin_token()}"}


class TestAuthRoutes(RouteTestCase):
    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["status"], "ok")

    def test_login_and_verify(self):
        response = self.client.post("/api/auth/login", json={"password": "hunter2"})
        self.assertEqual(response.status_code, 200)
        token = response.get_json()["token"]

        verify = self.client.get("/api/auth/verify", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(verify.status_code, 200)
        self.assertTrue(verify.get_json()["valid"])

    def test_login_rejects_wrong_or_missing_password(self):
        self.assertEqual(self.client.post("/api/auth/login", json={"password": "nope"}).status_code, 401)
        self.assertEqual(self.client.post("/api/auth/login", json={}).status_code, 400)

    def test_login_without_admin_password_configured(self):
        os.environ.pop("ADMIN_PASSWORD")
        response = self.client.post("/api/auth/login", json={"password": "hunter2"})
        self.assertEqual(response.status_code, 500)

    def test_verify_rejects_bad_tokens(self):
        self.assertEqual(self.client.get("/api/auth/verify").status_code, 401)
        bad = self.client.get("/api/auth/verify", headers={"Authorization": "Bearer not.a.jwt"})
        self.assertEqual(bad.status_code, 401)
        malformed = self.client.get("/api/auth/verify", headers={"Authorization": "Token abc"})
        self.assertEqual(malformed.status_code, 401)


class TestLinkRoutes(RouteTestCase):
    def test_submit_requires_admin(self):
        response = self.client.post("/api/submit-links", json={"links": "https://youtu.be/abc"})
        self.assertEqual(response.status_code, 401)

    def test_submit_links(self):
        with mock.patch("link_store.append_submitted_links",
                        return_value={"added": 2, "duplicates": 1, "total": 5}) as append:
            response = self.client.post("/api/submit-links", headers=self.admin_headers, json={
                "links": "https://youtu.be/abc123\nhttps://example.com/blog https://youtu.be/abc123",
                "mentions": ["Daft Punk - Around The World"],
                "month": "2026-01",
            })

        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body["added"], 2)
        self.assertEqual(body["duplicatesSkipped"], 1)
        self.assertEqual(body["totalLinks"], 5)
        self.assertEqual(body["unrecognized"], ["https://example.com/blog"])
        append.assert_called_once_with("2026-01", [
            "https://youtu.be/abc123", "https://example.com/blog", "Daft Punk - Around The World"
        ])

    def test_submit_without_valid_links(self):
        response = self.client.post("/api/submit-links", headers=self.admin_headers,
                                    json={"links": "no links here"})
        self.assertEqual(response.status_code, 400)

    def test_submit_with_invalid_month(self):
        response = self.client.post("/api/submit-links", headers=self.admin_headers,
                                    json={"links": "https://youtu.be/abc", "month": "January"})
        self.assertEqual(response.status_code, 400)

    def test_get_links(self):
        doc = {"month": "2026-01", "links": ["https://youtu.be/abc"],
               "created_at": datetime(2026, 1, 2, tzinfo=timezone.utc), "updated_at": None}
        with mock.patch("link_store.get_links_document", return_value=doc):
            response = self.client.get("/api/get-links?month=2026-01")

        body = response.get_json()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(body["count"], 1)
        self.assertEqual(body["createdAt"], "2026-01-02T00:00:00+00:00")

    def test_get_links_for_empty_month(self):
        with mock.patch("link_store.get_links_document", return_value=None):
            body = self.client.get("/api/get-links?month=2026-02").get_json()
        self.assertEqual(body, {"success": True, "month": "2026-02", "links": [], "count": 0})


class TestGenerateRoute(RouteTestCase):
    def test_runs_generator_and_returns_its_status(self):
        with mock.patch("routes.playlist.PlaylistGenerator") as generator:
            generator.return_value.run.return_value = ({"success": False, "message": "boom"}, 500)
            response = self.client.post("/api/generate-playlist")

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json()["message"], "boom")
        generator.return_value.run.assert_called_once_with(target_month=None)

    def test_month_override(self):
        with mock.patch("routes.playlist.PlaylistGenerator") as generator:
            generator.return_value.run.return_value = ({"success": True}, 200)
            self.client.get("/api/generate-playlist?month=2025-12")

        target = generator.return_value.run.call_args.kwargs["target_month"]
        self.assertEqual(target.year_month, "2025-12")

    def test_invalid_month(self):
        response = self.client.get("/api/generate-playlist?month=2025-13")
        self.assertEqual(response.status_code, 400)

    def test_invalid_candidate_delay_returns_json_report(self):
        os.environ["CANDIDATE_DELAY_SECONDS"] = "abc"
        with mock.patch("routes.playlist.PlaylistGenerator") as generator:
            response = self.client.post("/api/generate-playlist")

        self.assertEqual(response.status_code, 500)
        self.assertTrue(response.is_json)
        body = response.get_json()
        self.assertFalse(body["success"])
        self.assertIn("CANDIDATE_DELAY_SECONDS", body["message"])
        self.assertEqual(body["stats"]["itemsScanned"], 0)
        generator.assert_not_called()

    def test_cron_secret_is_enforced_when_set(self):
        os.environ["CRON_SECRET"] = "cron-token"
        with mock.patch("routes.playlist.PlaylistGenerator") as generator:
            generator.return_value.run.return_value = ({"success": True}, 200)
            denied = self.client.get("/api/generate-playlist")
            allowed = self.client.get("/api/generate-playlist",
                                      headers={"Authorization": "Bearer cron-token"})

        self.assertEqual(denied.status_code, 401)
        self.assertEqual(allowed.status_code, 200)
        self.assertEqual(generator.return_value.run.call_count, 1)


class TestAdminRoutes(RouteTestCase):
    def test_save_config_validates_fields(self):
        response = self.client.post("/api/save-config", headers=self.admin_headers,
                                    json={"SPOTIFY_CLIENT_ID": "id"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("SPOTIFY_REFRESH_TOKEN", response.get_json()["error"])

    def test_save_config(self):
        payload = {
            "SPOTIFY_CLIENT_ID": "id",
            "SPOTIFY_CLIENT_SECRET": "secret",
            "SPOTIFY_USER_ID": "owner",
            "SPOTIFY_REFRESH_TOKEN": "refresh",
        }
        saved = {"project_id": "default", "updated_at": datetime(2026, 1, 1, tzinfo=timezone.utc)}
        with mock.patch("config_store.save_config", return_value=saved) as save:
            response = self.client.post("/api/save-config", headers=self.admin_headers, json=payload)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["projectId"], "default")
        save.assert_called_once_with("default", payload)

    def test_admin_config_is_masked(self):
        row = {
            "project_id": "default",
            "vars": {"SPOTIFY_CLIENT_SECRET": "0123456789abcdef", "SPOTIFY_USER_ID": "owner"},
            "last_run": None, "created_at": None, "updated_at": None,
        }
        with mock.patch("config_store.get_config", return_value=row):
            response = self.client.get("/api/admin/config?projectId=default", headers=self.admin_headers)

        vars = response.get_json()["config"]["vars"]
        self.assertEqual(vars["SPOTIFY_CLIENT_SECRET"], "0123...cdef")
        self.assertEqual(vars["SPOTIFY_USER_ID"], "owner")

    def test_delete_config(self):
        with mock.patch("config_store.delete_config", return_value=True) as delete:
            response = self.client.delete("/api/admin/config?projectId=old", headers=self.admin_headers)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json(), {"success": True, "projectId": "old"})
        delete.assert_called_once_with("old")

    def test_delete_config_errors(self):
        self.assertEqual(self.client.delete("/api/admin/config?projectId=old").status_code, 401)
        self.assertEqual(self.client.delete("/api/admin/config", headers=self.admin_headers).status_code, 400)
        with mock.patch("config_store.delete_config", return_value=False):
            missing = self.client.delete("/api/admin/config?projectId=nope", headers=self.admin_headers)
        self.assertEqual(missing.status_code, 404)

    def test_admin_config_list(self):
        with mock.patch("config_store.list_configs", return_value=[{"project_id": "default"}]):
            response = self.client.get("/api/admin/config", headers=self.admin_headers)
        self.assertEqual(response.get_json()["count"], 1)


class TestStatusAndStatsRoutes(RouteTestCase):
    def test_status_without_database(self):
        with mock.patch("db_utils.test_connection", return_value=False):
            response = self.client.get("/api/status")

        body = response.get_json()
        self.assertEqual(response.status_code, 200)
        self.assertFalse(body["hasDatabaseConnection"])
        self.assertIn("00:00 UTC", body["nextCronRunDescription"])
        self.assertIsNone(body["lastRunSummary"])

    def test_status_reports_last_run(self):
        row = {"vars": {}, "last_run": {"date": "2026-02-01T00:00:05+00:00", "success": True,
                                        "tracksAdded": 12, "playlistUrl": "https://open.spotify.com/playlist/p"}}
        with mock.patch("db_utils.test_connection", return_value=True), \
                mock.patch("config_store.get_config", return_value=row):
            body = self.client.get("/api/status").get_json()

        self.assertTrue(body["hasDatabaseConnection"])
        self.assertEqual(body["lastRunSummary"]["tracksAdded"], 12)

    def test_spotify_check_requires_credentials_in_body(self):
        response = self.client.post("/api/test/spotify", json={"clientId": "x"})
        self.assertEqual(response.status_code, 400)

    def test_stats_without_playlist_ids(self):
        with mock.patch.dict(app.config, {"MAIN_PLAYLIST_ID": None}):
            response = self.client.get("/api/stats")
        self.assertEqual(response.status_code, 503)

    def test_stats_sets_cache_header(self):
        config = SpotifyConfig(client_id="id", client_secret="s", refresh_token="r", user_id="u")
        data = {"playlists": [], "tracks_by_playlist": {"main": []}}
        with mock.patch.dict(app.config, {"MAIN_PLAYLIST_ID": "main", "PLAYLIST_IDS": "jan"}), \
                mock.patch("config_store.get_active_config", return_value=config), \
                mock.patch("routes.stats.fetch_all_playlists_data", return_value=data) as fetch:
            response = self.client.get("/api/stats")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers["Cache-Control"], "s-maxage=300, stale-while-revalidate")
        self.assertEqual(fetch.call_args.args[1], ["main", "jan"])
        self.assertEqual(response.get_json()["current"]["tracks"], 0)


if __name__ == "__main__":
    unittest.main()
