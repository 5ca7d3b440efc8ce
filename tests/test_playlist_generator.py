import unittest
from datetime import datetime, timezone
from unittest import mock

from config_store import ConfigError
from date_utils import month_bounds
from models import SpotifyConfig
from playlist_generator import GeneratorSettings, PlaylistGenerator, RunContext, failure_report
from spotify_client import SpotifyAPIError, TokenCache


RUN_TIME = datetime(2026, 2, 1, 0, 0, tzinfo=timezone.utc)


def track(track_id, release_date, name="Song", artists=("Artist",)):
    return {
        "id": track_id,
        "uri": f"spotify:track:{track_id}",
        "name": name,
        "artists": [{"name": a} for a in artists],
        "album": {"release_date": release_date},
    }


class FakeSpotifyClient:
    """Stands in for SpotifyClient; records playlist writes"""

    def __init__(self, config, token_cache=None, page_delay=0.1, logger=None):
        self.config = config
        self.token_cache = token_cache
        self.catalog = {}
        self.search_results = {}
        self.search_errors = {}
        self.existing_uris = set()
        self.created = []
        self.added = []
        self.add_error = None

    def get_access_token(self):
        return "token"

    def get_track(self, track_id):
        if track_id not in self.catalog:
            raise SpotifyAPIError(404, "not found")
        return self.catalog[track_id]

    def search_tracks(self, query, limit=10):
        if query in self.search_errors:
            raise self.search_errors[query]
        return self.search_results.get(query, [])

    def create_playlist(self, user_id, name, description, public=False):
        self.created.append((user_id, name, description, public))
        return {"id": "new-playlist", "name": name,
                "external_urls": {"spotify": "https://open.spotify.com/playlist/new-playlist"}}

    def get_playlist_track_uris(self, playlist_id):
        return set(self.existing_uris)

    def add_tracks_to_playlist(self, playlist_id, uris):
        if self.add_error:
            raise self.add_error
        self.added.extend(uris)
        return {"snapshot_id": "s1"}


class GeneratorTestCase(unittest.TestCase):
    def setUp(self):
        self.config_store = mock.Mock()
        self.config_store.get_active_config.return_value = SpotifyConfig(
            client_id="cid", client_secret="secret", refresh_token="refresh", user_id="owner"
        )
        self.link_store = mock.Mock()
        self.link_store.get_submitted_links.return_value = []

        self.client = FakeSpotifyClient(None)
        self.settings = GeneratorSettings(candidate_delay=0, batch_delay=0, page_delay=0)

    def factory(self, config, **kwargs):
        self.client.config = config
        return self.client

    def run_generator(self, **run_kwargs):
        context = RunContext(
            config_store=self.config_store,
            link_store=self.link_store,
            token_cache=TokenCache(),
            settings=self.settings,
            client_factory=self.factory,
        )
        run_kwargs.setdefault("now", RUN_TIME)
        return PlaylistGenerator(context).run(**run_kwargs)


class TestSuccessfulRuns(GeneratorTestCase):
    def test_text_mention_becomes_playlist_track(self):
        self.link_store.get_submitted_links.return_value = ["Check out Daft Punk - Around The World"]
        self.client.search_results["track:Around The World artist:Daft Punk"] = [
            track("dp1", "2026-01-15", name="Around The World", artists=("Daft Punk",))
        ]

        report, status = self.run_generator()

        self.assertEqual(status, 200)
        self.assertTrue(report["success"])
        self.assertEqual(report["target_month"], "2026-01")
        self.assertEqual(report["playlist"], {
            "name": "Digital Diggaz January 2026",
            "url": "https://open.spotify.com/playlist/new-playlist",
            "id": "new-playlist",
        })
        self.assertEqual(report["stats"], {
            "itemsScanned": 1,
            "candidatesExtracted": 1,
            "tracksMatched": 1,
            "tracksAdded": 1,
            "tracksSkipped": 0,
            "errors": [],
        })
        self.assertIn("duration_ms", report)
        self.link_store.get_submitted_links.assert_called_once_with("2026-01")
        self.assertEqual(self.client.added, ["spotify:track:dp1"])

        owner, name, description, public = self.client.created[0]
        self.assertEqual((owner, name, public), ("owner", "Digital Diggaz January 2026", False))
        self.assertIn("new releases only", description)

    def test_duplicate_matches_are_added_once(self):
        self.link_store.get_submitted_links.return_value = [
            "https://open.spotify.com/track/dp1",
            "Daft Punk - Around The World https://youtu.be/abc123",
        ]
        self.client.catalog["dp1"] = track("dp1", "2026-01-15")
        self.client.search_results["track:Around The World artist:Daft Punk"] = [track("dp1", "2026-01-15")]

        report, status = self.run_generator()

        self.assertEqual(status, 200)
        self.assertEqual(report["stats"]["candidatesExtracted"], 2)
        self.assertEqual(report["stats"]["tracksMatched"], 1)
        self.assertEqual(self.client.added, ["spotify:track:dp1"])

    def test_candidate_errors_are_collected_and_run_continues(self):
        self.link_store.get_submitted_links.return_value = [
            "https://open.spotify.com/track/gone",
            "https://open.spotify.com/track/ok1",
        ]
        self.client.catalog["ok1"] = track("ok1", "2026-01-02")

        report, status = self.run_generator()

        self.assertEqual(status, 200)
        self.assertEqual(len(report["stats"]["errors"]), 1)
        self.assertIn("gone", report["stats"]["errors"][0])
        self.assertEqual(report["stats"]["tracksAdded"], 1)

    def test_tracks_already_in_playlist_are_skipped(self):
        self.link_store.get_submitted_links.return_value = ["https://open.spotify.com/track/ok1"]
        self.client.catalog["ok1"] = track("ok1", "2026-01-02")
        self.client.existing_uris = {"spotify:track:ok1"}

        report, _ = self.run_generator()

        self.assertEqual(report["stats"]["tracksAdded"], 0)
        self.assertEqual(report["stats"]["tracksSkipped"], 1)

    def test_month_override_and_custom_prefix(self):
        self.settings = GeneratorSettings.from_env(
            environ={"PLAYLIST_NAME_PREFIX": "Crate Club"},
            candidate_delay=0, batch_delay=0, page_delay=0
        )
        self.link_store.get_submitted_links.return_value = ["https://open.spotify.com/track/ok1"]
        self.client.catalog["ok1"] = track("ok1", "2025-11-30")

        report, _ = self.run_generator(target_month=month_bounds(2025, 11))

        self.assertEqual(report["target_month"], "2025-11")
        self.assertEqual(report["playlist"]["name"], "Crate Club November 2025")

    def test_last_run_is_recorded(self):
        self.link_store.get_submitted_links.return_value = ["https://open.spotify.com/track/ok1"]
        self.client.catalog["ok1"] = track("ok1", "2026-01-02")

        self.run_generator()

        summary, project_id = self.config_store.record_last_run.call_args.args
        self.assertEqual(project_id, "default")
        self.assertTrue(summary["success"])
        self.assertEqual(summary["tracksAdded"], 1)
        self.assertEqual(summary["playlistUrl"], "https://open.spotify.com/playlist/new-playlist")

    def test_last_run_recording_failure_does_not_fail_run(self):
        self.config_store.record_last_run.side_effect = RuntimeError("db down")

        report, status = self.run_generator()

        self.assertEqual(status, 200)
        self.assertTrue(report["success"])

    def test_dry_run_resolves_without_publishing(self):
        self.settings.dry_run = True
        self.link_store.get_submitted_links.return_value = ["https://open.spotify.com/track/ok1"]
        self.client.catalog["ok1"] = track("ok1", "2026-01-02", name="Fresh")

        report, status = self.run_generator()

        self.assertEqual(status, 200)
        self.assertEqual(self.client.created, [])
        self.assertNotIn("playlist", report)
        self.assertEqual([t["name"] for t in report["tracks"]], ["Fresh"])
        self.config_store.record_last_run.assert_not_called()


class TestPacing(GeneratorTestCase):
    def test_one_throttled_wait_before_each_candidate(self):
        self.settings = GeneratorSettings(candidate_delay=0.5, batch_delay=0, page_delay=0, dry_run=True)
        self.link_store.get_submitted_links.return_value = [
            "https://open.spotify.com/track/a1",
            "https://open.spotify.com/track/b2",
            "https://open.spotify.com/track/c3",
        ]
        events = []
        original_get_track = self.client.get_track

        def get_track(track_id):
            events.append(f"resolve:{track_id}")
            return original_get_track(track_id)

        self.client.get_track = get_track
        for track_id in ("a1", "b2", "c3"):
            self.client.catalog[track_id] = track(track_id, "2026-01-02")

        with mock.patch("rate_limiter.time.monotonic", return_value=500.0), \
                mock.patch("rate_limiter.time.sleep",
                           side_effect=lambda seconds: events.append(f"sleep:{seconds}")):
            report, status = self.run_generator()

        self.assertEqual(status, 200)
        self.assertEqual(events, [
            "resolve:a1", "sleep:0.5", "resolve:b2", "sleep:0.5", "resolve:c3",
        ])

    def test_limiter_is_built_from_candidate_delay(self):
        self.settings = GeneratorSettings(candidate_delay=0.75, batch_delay=0, page_delay=0)
        self.link_store.get_submitted_links.return_value = [
            "https://open.spotify.com/track/a1",
            "https://open.spotify.com/track/b2",
        ]

        with mock.patch("playlist_generator.RateLimiter") as limiter_cls:
            self.run_generator()

        limiter_cls.assert_called_once_with(0.75)
        self.assertEqual(limiter_cls.return_value.wait.call_count, 2)


class TestSettings(unittest.TestCase):
    def test_defaults(self):
        settings = GeneratorSettings.from_env(environ={})
        self.assertEqual(settings.candidate_delay, 0.2)
        self.assertEqual(settings.playlist_prefix, "Digital Diggaz")

    def test_candidate_delay_from_environment(self):
        settings = GeneratorSettings.from_env(environ={"CANDIDATE_DELAY_SECONDS": "1.5"})
        self.assertEqual(settings.candidate_delay, 1.5)

    def test_invalid_candidate_delay(self):
        for raw in ("abc", "-1", "nan", "inf"):
            with self.subTest(raw=raw):
                with self.assertRaises(ValueError) as ctx:
                    GeneratorSettings.from_env(environ={"CANDIDATE_DELAY_SECONDS": raw})
                self.assertIn("CANDIDATE_DELAY_SECONDS", str(ctx.exception))

    def test_failure_report_shape(self):
        report, status = failure_report("bad setting")
        self.assertEqual(status, 500)
        self.assertFalse(report["success"])
        self.assertEqual(report["message"], "bad setting")
        self.assertEqual(report["stats"]["errors"], [])


class TestEarlyExits(GeneratorTestCase):
    def test_no_links(self):
        report, status = self.run_generator()

        self.assertEqual(status, 200)
        self.assertTrue(report["success"])
        self.assertEqual(report["message"], "No links submitted for January 2026.")
        self.assertEqual(report["stats"]["itemsScanned"], 0)
        self.assertEqual(self.client.created, [])

    def test_no_candidates(self):
        self.link_store.get_submitted_links.return_value = ["https://example.com/article", "ok"]

        report, status = self.run_generator()

        self.assertEqual(status, 200)
        self.assertEqual(report["message"], "No recognizable music found in submitted links")
        self.assertEqual(report["stats"]["itemsScanned"], 2)
        self.assertEqual(report["stats"]["candidatesExtracted"], 0)

    def test_malformed_search_result_does_not_abort_batch(self):
        self.link_store.get_submitted_links.return_value = [
            "Check out Broken Band - Nothing Here",
            "Check out Daft Punk - Around The World",
        ]
        self.client.search_results["track:Nothing Here artist:Broken Band"] = [None]
        self.client.search_results["track:Around The World artist:Daft Punk"] = [
            None, track("dp1", "2026-01-15", name="Around The World", artists=("Daft Punk",))
        ]

        report, status = self.run_generator()

        self.assertEqual(status, 200)
        self.assertTrue(report["success"])
        self.assertEqual(report["stats"]["tracksMatched"], 1)
        self.assertEqual(self.client.added, ["spotify:track:dp1"])

    def test_no_matches(self):
        self.link_store.get_submitted_links.return_value = ["https://open.spotify.com/track/old1"]
        self.client.catalog["old1"] = track("old1", "1997-03-17")

        report, status = self.run_generator()

        self.assertEqual(status, 200)
        self.assertEqual(report["message"], "No tracks from January 2026 found")
        self.assertEqual(report["stats"]["tracksMatched"], 0)
        self.assertNotIn("playlist", report)
        self.assertEqual(self.client.created, [])


class TestFailures(GeneratorTestCase):
    def test_missing_config_fails_with_500(self):
        self.config_store.get_active_config.side_effect = ConfigError(
            "Missing required config fields: SPOTIFY_REFRESH_TOKEN"
        )

        report, status = self.run_generator()

        self.assertEqual(status, 500)
        self.assertFalse(report["success"])
        self.assertIn("SPOTIFY_REFRESH_TOKEN", report["message"])
        self.assertEqual(report["stats"]["itemsScanned"], 0)
        summary = self.config_store.record_last_run.call_args.args[0]
        self.assertFalse(summary["success"])

    def test_append_failure_keeps_partial_stats(self):
        self.link_store.get_submitted_links.return_value = ["https://open.spotify.com/track/ok1"]
        self.client.catalog["ok1"] = track("ok1", "2026-01-02")
        self.client.add_error = SpotifyAPIError(500, "server error")

        report, status = self.run_generator()

        self.assertEqual(status, 500)
        self.assertFalse(report["success"])
        self.assertEqual(report["stats"]["itemsScanned"], 1)
        self.assertEqual(report["stats"]["tracksMatched"], 1)
        self.assertEqual(report["stats"]["tracksAdded"], 0)
        # The playlist was created before the failure and is not rolled back
        self.assertEqual(len(self.client.created), 1)


if __name__ == "__main__":
    unittest.main()
