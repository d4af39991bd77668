"""CLI script to manually push a report status change."""
from __future__ import annotations

import argparse

from lampatrack.services.notification_service import STATUS_CONTENT
from lampatrack.tasks.notifications import send_status_notification


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Send a status-change push notification to a report owner",
    )
    parser.add_argument("signalement_id", help="Report identifier")
    parser.add_argument("user_id", help="Owner identity as issued by the identity provider")
    parser.add_argument(
        "new_status",
        choices=sorted(STATUS_CONTENT),
        help="New status of the report",
    )
    parser.add_argument(
        "--async",
        action="store_true",
        dest="use_async",
        help="Queue task asynchronously instead of running immediately",
    )

    args = parser.parse_args()
    task_args = (args.signalement_id, args.user_id, args.new_status)

    print(f"Notifying {args.user_id} that {args.signalement_id} is {args.new_status}")
    if args.use_async:
        task = send_status_notification.apply_async(args=task_args)
        print(f"Task queued: {task.id}")
    else:
        result = send_status_notification.run(*task_args)
        print(f"Result: {result}")


if __name__ == "__main__":
    main()
