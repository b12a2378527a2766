from __future__ import annotations

from fastapi import APIRouter, Depends

from ...context import AppContext
from ..dependencies import get_context
from ..schemas import SyncReportOut

router = APIRouter(
    prefix="/api/v1/sync",
    tags=["sync"],
)


# PUBLIC_INTERFACE
@router.post(
    "/to-cloud",
    response_model=SyncReportOut,
    summary="Sync To Cloud",
    description=(
        "Merge local items into the signed-in user's cloud store (newer updated_at wins). "
        "Every collection is reported 'skipped' without a signed-in, non-anonymous user."
    ),
)
async def sync_to_cloud(context: AppContext = Depends(get_context)) -> SyncReportOut:
    await context.notes.flush_pending_saves()
    report = await context.sync.synchronize_to_cloud()
    if not report.skipped:
        await context.refresh_services()
    return SyncReportOut.from_report(report)


# PUBLIC_INTERFACE
@router.post(
    "/to-local",
    response_model=SyncReportOut,
    summary="Sync To Local",
    description="Merge the signed-in user's cloud items into the local store (newer updated_at wins).",
)
async def sync_to_local(context: AppContext = Depends(get_context)) -> SyncReportOut:
    await context.notes.flush_pending_saves()
    report = await context.sync.synchronize_to_local()
    if not report.skipped:
        await context.refresh_services()
    return SyncReportOut.from_report(report)
