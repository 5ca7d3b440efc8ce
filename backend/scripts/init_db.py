#!/usr/bin/env python3
"""
Database Setup - Command Line Interface
Creates the app_configs and submitted_links tables if they don't exist
"""

from script_base import ScriptBase, run_script
from dotenv import load_dotenv

load_dotenv()

import config_store
import db_utils
import link_store


def main() -> bool:
    script = ScriptBase(
        name="init_db",
        description="Create the database tables used by the playlist service",
        epilog="""
Examples:
  DATABASE_URL=postgresql://... python init_db.py
        """
    )
    script.add_debug_arg()
    script.parse_args()

    script.print_header()

    if not db_utils.test_connection():
        script.logger.error("Cannot connect to the database")
        return False

    config_store.ensure_table()
    script.logger.info("Table ready: app_configs")
    link_store.ensure_table()
    script.logger.info("Table ready: submitted_links")

    return True


if __name__ == "__main__":
    run_script(main)
