#!/usr/bin/env python3
"""
Monthly Playlist Generator - Command Line Interface
Builds the Spotify playlist of last month's new releases from submitted links
"""

from script_base import ScriptBase, run_script
from dotenv import load_dotenv

load_dotenv()

from config import create_run_context
from date_utils import parse_year_month
from playlist_generator import PlaylistGenerator


def main() -> bool:
    script = ScriptBase(
        name="generate_playlist",
        description="Build the monthly playlist from submitted links",
        epilog="""
Setup:
  Configure Spotify credentials via the admin panel (stored in Postgres) or
  set SPOTIFY_CLIENT_ID, SPOTIFY_CLIENT_SECRET, SPOTIFY_USER_ID and
  SPOTIFY_REFRESH_TOKEN, plus DATABASE_URL for the submitted links.

Examples:
  # Build last month's playlist
  python generate_playlist.py

  # Rebuild a specific month
  python generate_playlist.py --month 2026-01

  # Resolve tracks without creating a playlist
  python generate_playlist.py --dry-run --debug
        """
    )

    script.add_month_arg('Build this month (YYYY-MM) instead of the previous one')
    script.add_common_args()

    args = script.parse_args()

    target_month = None
    if args.month:
        try:
            target_month = parse_year_month(args.month)
        except ValueError as e:
            script.logger.error(str(e))
            return False

    script.print_header({"DRY RUN": args.dry_run})

    try:
        context = create_run_context(dry_run=args.dry_run)
    except ValueError as e:
        script.logger.error(str(e))
        return False

    generator = PlaylistGenerator(context, logger=script.logger)
    report, status_code = generator.run(target_month=target_month)

    stats = report['stats']
    script.print_summary({
        "Target month": report.get('target_month', '-'),
        "Submissions scanned": stats['itemsScanned'],
        "Music candidates": stats['candidatesExtracted'],
        "Tracks matched": stats['tracksMatched'],
        "Tracks added": stats['tracksAdded'],
        "Tracks skipped": stats['tracksSkipped'],
        "Errors": len(stats['errors']),
        "Duration (ms)": report['duration_ms'],
    }, title="PLAYLIST SUMMARY")

    if report.get('playlist'):
        script.logger.info(f"Playlist: {report['playlist']['url']}")
    if args.dry_run and report.get('tracks'):
        script.print_section("Tracks that would be added", [
            f"{', '.join(track['artists'])} - {track['name']} ({track['releaseDate']})"
            for track in report['tracks']
        ])
    for error in stats['errors']:
        script.logger.warning(f"Error: {error}")

    if not report['success']:
        script.logger.error(f"Generation failed: {report['message']}")

    return report['success']


if __name__ == "__main__":
    run_script(main)
