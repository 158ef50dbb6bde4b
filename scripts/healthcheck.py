"""Simple healthcheck script for local/cron monitoring."""

import sys
from datetime import UTC, datetime

from recap.config import get_settings
from recap.storage import SQLiteRecapStore


def main() -> int:
    """Run healthcheck and return exit code."""
    settings = get_settings()

    issues: list[str] = []

    if not settings.db_path.exists():
        issues.append("Database not found")
    else:
        store = SQLiteRecapStore(settings.db_path)
        if not store.enabled_chat_ids():
            issues.append("No chats have recaps enabled")

        last_sent = store.last_sent_at()
        if last_sent:
            age_hours = (datetime.now(UTC) - last_sent).total_seconds() / 3600
            if age_hours > 24:
                issues.append(f"No recap sent in {age_hours:.0f} hours")
        else:
            issues.append("No recaps sent yet")

    if not settings.telegraph_access_token:
        issues.append("Missing Telegraph access token")

    if issues:
        print("UNHEALTHY")
        for issue in issues:
            print(f"  - {issue}")
        return 1

    print("HEALTHY")
    return 0


if __name__ == "__main__":
    sys.exit(main())
