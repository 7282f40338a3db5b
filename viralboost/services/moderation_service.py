"""
Reports, messages to the admin and the admin statistics.
"""

from datetime import UTC, datetime
from typing import Any

from viralboost.infrastructure.observability.logging import get_logger
from viralboost.store.base import Document, DocumentStore
from viralboost.utils.ids import new_id, utc_now_iso

logger = get_logger(__name__)

# Monthly price per paid plan, in euros, for the revenue estimate
PLAN_MONTHLY_PRICE = {"starter": 3.0, "pro": 14.99, "elite": 39.99}


async def submit_report(store: DocumentStore, fields: Document) -> Document:
    report = {**fields, "createdAt": utc_now_iso(), "id": new_id("rep"), "status": "pending"}
    await store.reports.upsert(report["id"], report)
    logger.warning(
        "Report submitted",
        report_id=report["id"],
        reporter=report.get("reporterEmail"),
        reported=report.get("reportedName"),
        reason=report.get("reason"),
    )
    return report


async def submit_admin_dm(store: DocumentStore, fields: Document) -> Document:
    dm = {**fields, "createdAt": utc_now_iso(), "id": new_id("adm"), "read": False}
    await store.admin_dms.upsert(dm["id"], dm)
    logger.info("Admin message received", dm_id=dm["id"], sender=dm.get("fromEmail"), plan=dm.get("fromPlan"))
    return dm


async def list_reports(store: DocumentStore) -> list[Document]:
    return await store.reports.list(order_by="createdAt", descending=True)


async def list_admin_dms(store: DocumentStore) -> list[Document]:
    return await store.admin_dms.list(order_by="createdAt", descending=True)


def _created_on(user: Document, day: str) -> bool:
    created = user.get("createdAt")
    return isinstance(created, str) and created.startswith(day)


async def admin_stats(store: DocumentStore) -> dict[str, Any]:
    users = await store.users.list()
    by_plan = {"free": 0, "starter": 0, "pro": 0, "elite": 0}
    for user in users:
        plan = user.get("plan") or "free"
        by_plan[plan] = by_plan.get(plan, 0) + 1

    paying = sum(count for plan, count in by_plan.items() if plan in PLAN_MONTHLY_PRICE)
    revenue = sum(PLAN_MONTHLY_PRICE[plan] * by_plan.get(plan, 0) for plan in PLAN_MONTHLY_PRICE)
    today = datetime.now(UTC).date().isoformat()

    return {
        "totalUsers": len(users),
        "byPlan": by_plan,
        "payingUsers": paying,
        "estimatedMonthlyRevenue": round(revenue, 2),
        "newToday": sum(1 for u in users if _created_on(u, today)),
        "bannedUsers": sum(1 for u in users if u.get("banned")),
        "totalProjects": len(await store.projects.list()),
        "totalPosts": len(await store.posts.list()),
        "pendingReports": len(await store.reports.list(lambda r: r.get("status") == "pending")),
        "unreadAdminMessages": len(await store.admin_dms.list(lambda d: not d.get("read"))),
    }
