"""Dashboard summary endpoint for the overview page."""

import logging

from fastapi import APIRouter, Depends

from api.auth import require_user
from api.backend import BackendClient, get_backend
from api.main_page import MainPageState, get_main_page
from api.models import UserProfile
from api.routes.content import CONTENT_KINDS, list_records
from utils.config import INQUIRIES_TABLE, USERS_TABLE

logger = logging.getLogger("crg_admin.dashboard")

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

_RECENT = 5


def build_summary(backend: BackendClient, state: MainPageState) -> dict:
    """Aggregate the numbers shown on the dashboard overview.

    Includes:
    - Row counts per collection (content kinds, inquiries, users)
    - Number of inquiries still in the "new" state
    - Upcoming vs completed events (status derived from the end date)
    - The five most recently created events and activities
    - Which main page configuration is displayed, and any load error
    """
    now = state.clock()
    counts = {name: backend.count_documents(kind.table)
              for name, kind in CONTENT_KINDS.items() if name not in ("events", "activities")}
    events = list_records(backend, CONTENT_KINDS["events"], now)
    activities = list_records(backend, CONTENT_KINDS["activities"], now)
    counts["events"] = len(events)
    counts["activities"] = len(activities)
    counts["inquiries"] = backend.count_documents(INQUIRIES_TABLE)
    counts["users"] = backend.count_documents(USERS_TABLE)

    upcoming = sum(1 for e in events if e.get("status") == "Upcoming")
    return {
        "counts": counts,
        "new_inquiries": backend.count_documents(INQUIRIES_TABLE, {"status": "new"}),
        "events": {"upcoming": upcoming, "completed": len(events) - upcoming},
        "recent_events": events[:_RECENT],
        "recent_activities": activities[:_RECENT],
        "main_page": {
            "active_id": state.active.id,
            "load_error": state.load_error,
        },
    }


@router.get("/summary", summary="Dashboard summary statistics")
def dashboard_summary(
    backend: BackendClient = Depends(get_backend),
    state: MainPageState = Depends(get_main_page),
    user: UserProfile = Depends(require_user),
) -> dict:
    """Return aggregated statistics for the dashboard overview page."""
    state.refresh()
    return build_summary(backend, state)
