"""CLI script to manually trigger the step notification scan or broadcast sweep."""
from __future__ import annotations

import argparse

from pushadmin.tasks.scheduled import send_scheduled_notifications
from pushadmin.tasks.step_notifications import run_step_notifications


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Manually trigger step notifications or scheduled broadcasts",
    )
    parser.add_argument(
        "--tenant-id",
        type=int,
        help="Restrict the step scan to one tenant",
    )
    parser.add_argument(
        "--broadcasts",
        action="store_true",
        help="Run the scheduled broadcast sweep instead of the step scan",
    )
    parser.add_argument(
        "--async",
        action="store_true",
        dest="use_async",
        help="Queue task asynchronously instead of running immediately",
    )

    args = parser.parse_args()

    if args.broadcasts:
        print("Sending due scheduled notifications")
        if args.use_async:
            task = send_scheduled_notifications.apply_async()
            print(f"Task queued: {task.id}")
        else:
            print(f"Result: {send_scheduled_notifications.run()}")
        return

    print(f"Running step notification scan (tenant: {args.tenant_id or 'all'})")
    if args.use_async:
        task = run_step_notifications.apply_async(kwargs={"tenant_id": args.tenant_id})
        print(f"Task queued: {task.id}")
    else:
        print(f"Result: {run_step_notifications.run(tenant_id=args.tenant_id)}")


if __name__ == "__main__":
    main()
