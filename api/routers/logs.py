from fastapi import APIRouter, HTTPException, Query

from api.log_buffer import log_buffer

router = APIRouter()


@router.get("")
def get_logs(
    after: str | None = None,
    level: str | None = None,
    component: str | None = None,
    limit: int | None = Query(None, ge=1),
):
    try:
        entries = log_buffer.records(after=after, level=level, component=component, limit=limit)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"logs": entries}
