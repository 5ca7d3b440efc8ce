#!/usr/bin/env python3
"""
Submit Links - Command Line Interface
Adds music links (and free-text mentions) to a month's submission batch
"""

from script_base import ScriptBase, run_script
from dotenv import load_dotenv

load_dotenv()

import link_store
from music_detector import extract_music_urls


def main() -> bool:
    script = ScriptBase(
        name="submit_links",
        description="Add links to a month's submission batch",
        epilog="""
Examples:
  # Submit links for the current month
  python submit_links.py https://youtu.be/abc123 https://open.spotify.com/track/xyz

  # Read one link per line from a file
  python submit_links.py --file links.txt --month 2026-01

  # Submit a mention without a link
  python submit_links.py --mention "Daft Punk - Around The World"

  # Show what would be stored without writing
  python submit_links.py --file links.txt --dry-run
        """
    )

    script.parser.add_argument('links', nargs='*', help='Links to submit')
    script.parser.add_argument('--file', help="Read links from a file ('-' for stdin)")
    script.parser.add_argument(
        '--mention',
        action='append',
        default=[],
        help='Free-text music mention to store as-is (repeatable)'
    )
    script.add_month_arg('Month to add links to (YYYY-MM, default: current month)')
    script.add_common_args()

    args = script.parse_args()

    month = args.month or link_store.current_month_key()
    if not link_store.is_month_key(month):
        script.logger.error(f"Invalid month '{args.month}', expected YYYY-MM")
        return False

    raw = list(args.links)
    if args.file:
        raw.append(script.read_text_input(args.file))

    links = link_store.parse_links(raw)
    mentions = [m.strip() for m in args.mention if m.strip()]
    submissions = links + [m for m in mentions if m not in links]

    if not submissions:
        script.logger.error("No valid URLs found in submission")
        return False

    script.print_header({"DRY RUN": args.dry_run})

    unrecognized = [link for link in links if not extract_music_urls(link)]
    if unrecognized:
        script.print_section("Links not recognized as music (stored anyway)", unrecognized)

    if args.dry_run:
        script.print_section(f"Would submit for {month}", submissions)
        return True

    result = link_store.append_submitted_links(month, submissions)

    script.print_summary({
        "Month": month,
        "Added": result['added'],
        "Duplicates skipped": result['duplicates'],
        "Total links": result['total'],
    }, title="SUBMISSION SUMMARY")

    return True


if __name__ == "__main__":
    run_script(main)
