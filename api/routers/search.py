from dataclasses import asdict
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query

from api.deps import get_manager
from mail_search import (
    InvalidQueryError,
    SearchEngineNotInitializedError,
    SearchManager,
    SearchOptions,
)

router = APIRouter()


@router.get("")
async def search(
    q: str = Query(...),
    remote: bool = False,
    limit: int | None = Query(None, ge=1, le=500),
    sort_by: Literal["relevance", "date", "sender"] = "relevance",
    sort_order: Literal["asc", "desc"] = "desc",
    manager: SearchManager = Depends(get_manager),
):
    options = SearchOptions(use_remote=remote, limit=limit, sort_by=sort_by, sort_order=sort_order)
    try:
        result = await manager.perform_search(q, options)
    except InvalidQueryError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SearchEngineNotInitializedError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if result is None:
        return {"results": [], "query": q, "total_results": 0, "search_type": "empty"}
    return result.to_dict()


@router.get("/suggestions")
def suggestions(q: str = "", manager: SearchManager = Depends(get_manager)):
    return {"suggestions": [asdict(s) for s in manager.get_suggestions(q)]}


@router.get("/history")
def history(manager: SearchManager = Depends(get_manager)):
    return {"history": [asdict(h) for h in manager.get_history()]}


@router.delete("/history")
def clear_history(manager: SearchManager = Depends(get_manager)):
    manager.clear_history()
    return {"cleared": True}
