"""
API entrypoint.

Operator notes:
- Keep this file small. Runtime configuration is read by location_builder.config
  from the environment (or .env) when location_builder.main is imported.
- If startup fails, the cause should be obvious from the log output.
"""

import logging
import sys

from location_builder.main import run


def main() -> None:
    try:
        run()
    except Exception:
        logging.basicConfig(level=logging.ERROR)
        logging.exception("API failed to start.")
        print("\nAPI failed to start.")
        print("   See error above. Most common causes:")
        print("   - Database path/URL invalid (DATABASE_URL or DB_PATH)")
        print("   - Port already in use (PORT)")
        print("   - Missing dependencies / broken venv\n")
        sys.exit(1)


if __name__ == "__main__":
    main()
