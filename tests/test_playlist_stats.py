import unittest
from unittest import mock

from playlist_stats import (
    build_stats,
    calculate_total_duration,
    fetch_all_playlists_data,
    format_duration,
    get_new_tracks,
    get_top_artists,
    get_unique_tracks,
    parse_playlist_ids,
)


def t(track_id, artists, duration_ms=200000, added_at="2026-01-01T00:00:00Z"):
    return {"id": track_id, "name": f"Track {track_id}", "artists": list(artists),
            "durationMs": duration_ms, "addedAt": added_at}


TRACKS_BY_PLAYLIST = {
    "main": [
        t("a", ["Artist A"], 100000, "2026-02-01T10:00:00Z"),
        t("b", ["Artist B", "Artist A"], 200000, "2026-02-03T10:00:00Z"),
        t("c", ["Artist C"], 300000, "2026-02-02T10:00:00Z"),
    ],
    "jan": [
        t("a", ["Artist A"], 100000),
        t("d", ["Artist A"], 400000),
    ],
}


class TestCalculations(unittest.TestCase):
    def test_unique_tracks_first_occurrence_wins(self):
        unique = get_unique_tracks(TRACKS_BY_PLAYLIST)
        self.assertEqual(list(unique), ["a", "b", "c", "d"])
        self.assertEqual(unique["a"]["addedAt"], "2026-02-01T10:00:00Z")

    def test_total_duration_for_lists_and_dicts(self):
        self.assertEqual(calculate_total_duration(TRACKS_BY_PLAYLIST["main"]), 600000)
        self.assertEqual(calculate_total_duration(get_unique_tracks(TRACKS_BY_PLAYLIST)), 1000000)
        self.assertEqual(calculate_total_duration([{"id": "x"}]), 0)

    def test_top_artists(self):
        top = get_top_artists(get_unique_tracks(TRACKS_BY_PLAYLIST), limit=2)
        self.assertEqual(top, [{"name": "Artist A", "count": 3}, {"name": "Artist B", "count": 1}])

    def test_new_tracks_newest_first(self):
        new = get_new_tracks(TRACKS_BY_PLAYLIST["main"], TRACKS_BY_PLAYLIST, "main")
        self.assertEqual([track["id"] for track in new], ["b", "c"])

    def test_format_duration(self):
        self.assertEqual(format_duration(3723000), "1:02:03")
        self.assertEqual(format_duration(59999), "0:00:59")
        self.assertEqual(format_duration(0), "0:00:00")
        self.assertEqual(format_duration(-5), "0:00:00")
        self.assertEqual(format_duration(None), "0:00:00")

    def test_parse_playlist_ids_puts_main_first(self):
        self.assertEqual(parse_playlist_ids("main", "jan, feb,,"), ["main", "jan", "feb"])
        self.assertEqual(parse_playlist_ids("main", "jan,main"), ["jan", "main"])


class TestBuildStats(unittest.TestCase):
    def test_full_payload(self):
        data = {
            "playlists": [
                {"id": "main", "name": "Digital Diggaz", "url": "https://open.spotify.com/playlist/main",
                 "coverImage": "https://i.scdn.co/image/x", "followers": 42, "trackCount": 3},
                {"id": "jan", "name": "Digital Diggaz January 2026",
                 "url": "https://open.spotify.com/playlist/jan", "coverImage": None,
                 "followers": 1, "trackCount": 2},
            ],
            "tracks_by_playlist": TRACKS_BY_PLAYLIST,
        }

        stats = build_stats(data, "main")

        self.assertEqual(stats["main"]["followers"], 42)
        self.assertEqual(stats["total"], {"tracks": 4, "durationMs": 1000000})
        self.assertEqual(stats["current"], {"tracks": 3, "durationMs": 600000})
        self.assertEqual(stats["topArtists"][0], {"name": "Artist A", "count": 3})
        self.assertEqual([track["id"] for track in stats["newTracks"]], ["b", "c"])
        self.assertEqual(stats["otherPlaylists"], [{
            "id": "jan", "name": "Digital Diggaz January 2026",
            "url": "https://open.spotify.com/playlist/jan", "trackCount": 2,
        }])
        self.assertIn("fetchedAt", stats)

    def test_missing_main_playlist_uses_defaults(self):
        stats = build_stats({"playlists": [], "tracks_by_playlist": {}}, "main")
        self.assertEqual(stats["main"]["name"], "Digital Diggaz")
        self.assertEqual(stats["main"]["followers"], 0)
        self.assertEqual(stats["total"], {"tracks": 0, "durationMs": 0})


class TestFetchAllPlaylistsData(unittest.TestCase):
    def test_collects_metadata_and_tracks(self):
        client = mock.Mock()
        client.get_playlist.return_value = {
            "id": "main", "name": "Digital Diggaz",
            "external_urls": {"spotify": "https://open.spotify.com/playlist/main"},
            "images": [{"url": "https://i.scdn.co/image/cover"}],
            "followers": {"total": 7}, "tracks": {"total": 2},
        }
        client.get_playlist_items.return_value = iter([
            {"added_at": "2026-02-01T00:00:00Z",
             "track": {"id": "a", "name": "A", "duration_ms": 1000, "artists": [{"name": "X"}]}},
            {"added_at": "2026-02-01T00:00:00Z", "track": {"id": None, "name": "local file"}},
        ])

        data = fetch_all_playlists_data(client, ["main"])

        self.assertEqual(data["playlists"][0]["coverImage"], "https://i.scdn.co/image/cover")
        self.assertEqual(data["playlists"][0]["followers"], 7)
        self.assertEqual(data["tracks_by_playlist"]["main"], [{
            "id": "a", "name": "A", "artists": ["X"], "durationMs": 1000, "addedAt": "2026-02-01T00:00:00Z",
        }])


if __name__ == "__main__":
    unittest.main()
