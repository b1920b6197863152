"""
Missed-Task Cron Job: periodic deadline sweep.

This module runs as a scheduled job (via cron, a platform scheduler, or the
cron HTTP endpoint) to raise missed-task alerts and task reminder digests.

Typical cron schedule: 0 * * * * (hourly)
"""

import asyncio
import logging
import traceback
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import get_settings
from ..core.database import build_engine, build_session_factory
from ..services.deadline_resolver import DeadlineResolver
from ..services.reminders import ReminderConfig, ReminderService


logger = logging.getLogger(__name__)


# =============================================================================
# OPERATIONAL ALERTS
# =============================================================================


SEVERITY_COLORS = {"critical": "#dc2626", "warning": "#f59e0b", "error": "#ea580c"}


def _slack_payload(title: str, message: str, severity: str, details: dict) -> dict:
    fields = [{"type": "mrkdwn", "text": f"*{key}*\n{value}"} for key, value in details.items()]
    blocks: list[dict] = [
        {"type": "header", "text": {"type": "plain_text", "text": title}},
        {"type": "section", "text": {"type": "mrkdwn", "text": message}},
    ]
    if fields:
        # Slack caps a section at ten fields
        blocks.append({"type": "section", "fields": fields[:10]})
    return {"attachments": [{"color": SEVERITY_COLORS.get(severity, "#6b7280"), "blocks": blocks}]}


def _webhook_payload(title: str, message: str, severity: str, details: dict) -> dict:
    return {
        "source": "activity-engine-sweep",
        "severity": severity,
        "title": title,
        "message": message,
        "details": details,
        "sent_at": datetime.now(timezone.utc).isoformat(),
    }


async def send_alert(
    title: str,
    message: str,
    severity: str = "error",
    details: dict | None = None,
) -> None:
    """
    Report a sweep failure to operators.

    The alert is always logged. It is also posted to the Slack webhook
    and to the generic webhook (PagerDuty, Opsgenie, ...) when configured.
    A channel that fails is logged and never masks the original problem.
    """
    settings = get_settings()
    details = details or {}

    level = {"critical": logging.CRITICAL, "warning": logging.WARNING}.get(severity, logging.ERROR)
    logger.log(level, f"[SWEEP ALERT] {title}: {message}" + (f" | {details}" if details else ""))

    channels = []
    if settings.slack_alerts_webhook_url:
        channels.append(("Slack", settings.slack_alerts_webhook_url, _slack_payload))
    if settings.alert_webhook_url:
        channels.append(("webhook", settings.alert_webhook_url, _webhook_payload))
    if not channels:
        return

    async with httpx.AsyncClient(timeout=10.0) as client:
        for name, url, build_payload in channels:
            try:
                response = await client.post(url, json=build_payload(title, message, severity, details))
                response.raise_for_status()
            except httpx.HTTPError as e:
                logger.error(f"Could not deliver {name} alert: {e}")


# =============================================================================
# SWEEP
# =============================================================================


async def run_sweep(
    session_factory: async_sessionmaker[AsyncSession],
    now: datetime,
    organization_id: UUID | None = None,
    include_digests: bool = True,
    reminder_config: ReminderConfig | None = None,
) -> dict[str, Any]:
    """
    Raise missed-task alerts, then reminder digests.

    Per-item failures are collected in ``errors``; they never stop the sweep.
    """
    resolver = DeadlineResolver(session_factory)
    sweep = await resolver.sweep(now, organization_id=organization_id)

    results = {
        "organizations_processed": sweep.organizations_processed,
        "missed_count": sweep.missed_count,
        "alerts_created": sweep.alerts_created,
        "alerts_skipped": sweep.alerts_skipped,
        "digests_created": 0,
        "errors": list(sweep.errors),
    }

    logger.info(
        f"Missed-task sweep: {sweep.missed_count} missed, "
        f"{sweep.alerts_created} alerts created, {sweep.alerts_skipped} already open"
    )

    if include_digests:
        reminders = ReminderService(
            session_factory,
            config=reminder_config or ReminderConfig.from_settings(get_settings()),
        )
        digests = await reminders.generate_digests(now, organization_id=organization_id)
        results["digests_created"] = len(digests.notifications)
        results["errors"].extend(digests.errors)

        logger.info(
            f"Generated {len(digests.notifications)} digests, "
            f"{digests.skipped_cooldown} skipped by cooldown"
        )

    return results


async def run_missed_task_job(
    database_url: str,
    now: datetime | None = None,
    organization_id: UUID | None = None,
    include_digests: bool = True,
) -> dict[str, Any]:
    """
    Run one sweep against ``database_url`` with a short-lived engine.

    ``now`` defaults to the current UTC time. Operators are alerted when the
    sweep crashes (critical) and when individual items failed (warning).
    """
    started = datetime.now(timezone.utc)
    now = now or started
    logger.info(f"Missed-task sweep starting, now={now.isoformat()}")

    engine = build_engine(database_url)
    try:
        results = await run_sweep(
            build_session_factory(engine),
            now,
            organization_id=organization_id,
            include_digests=include_digests,
        )
    except Exception as e:
        logger.exception("Missed-task sweep crashed")
        await send_alert(
            "Missed-task sweep crashed",
            f"No alerts or digests were written after: {e}",
            severity="critical",
            details={
                "organization": str(organization_id or "all"),
                "started_at": started.isoformat(),
                "trace": traceback.format_exc(limit=3),
            },
        )
        raise
    finally:
        await engine.dispose()

    finished = datetime.now(timezone.utc)
    results.update(
        started_at=started.isoformat(),
        completed_at=finished.isoformat(),
        duration_seconds=(finished - started).total_seconds(),
    )
    logger.info(
        f"Missed-task sweep finished in {results['duration_seconds']:.2f}s: "
        f"{results['alerts_created']} alerts, {results['digests_created']} digests, "
        f"{len(results['errors'])} failures"
    )

    if results["errors"]:
        await send_alert(
            "Missed-task sweep finished with failures",
            f"{len(results['errors'])} alerts or digests could not be written.",
            severity="warning",
            details={"first_failure": results["errors"][0], "alerts_created": results["alerts_created"]},
        )

    return results


# =============================================================================
# CLI ENTRY POINT
# =============================================================================


def main():
    """Console entry point: ``activity-engine-sweep``."""
    import argparse

    parser = argparse.ArgumentParser(description="Run the missed-task sweep")
    parser.add_argument(
        "--database-url",
        default=get_settings().database_url,
        help="Async SQLAlchemy connection string (DATABASE_URL)",
    )
    parser.add_argument(
        "--organization-id",
        type=UUID,
        default=None,
        help="Only sweep this organization",
    )
    parser.add_argument(
        "--skip-digests",
        action="store_true",
        help="Only raise missed-task alerts",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        results = asyncio.run(run_missed_task_job(
            database_url=args.database_url,
            organization_id=args.organization_id,
            include_digests=not args.skip_digests,
        ))
    except Exception:
        # Already logged and alerted
        raise SystemExit(1)

    print(
        f"{results['organizations_processed']} organizations swept: "
        f"{results['alerts_created']} alerts created, {results['alerts_skipped']} already open, "
        f"{results['digests_created']} digests, {len(results['errors'])} failures"
    )


if __name__ == "__main__":
    main()
