import logging
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.deps import get_manager
from mail_search import EmailMessage, SearchManager

logger = logging.getLogger(__name__)

router = APIRouter()


class AttachmentIn(BaseModel):
    filename: str = ""
    mime_type: str | None = None
    size: int = 0


class MessageIn(BaseModel):
    message_id: str
    subject: str = ""
    sender: Any = None
    to: Any = None
    cc: Any = None
    body_text: str = ""
    body_html: str = ""
    date: str | None = None
    attachments: list[AttachmentIn] = []


class IndexRequest(BaseModel):
    messages: list[MessageIn]


@router.post("")
def build_index(req: IndexRequest, manager: SearchManager = Depends(get_manager)):
    messages = [EmailMessage.from_dict(m.model_dump()) for m in req.messages]
    stats = manager.build_index(messages)
    logger.info("[api.index] rebuilt index from %d posted messages", len(messages))
    return asdict(stats)


@router.post("/messages")
def index_message(msg: MessageIn, manager: SearchManager = Depends(get_manager)):
    manager.index_message(EmailMessage.from_dict(msg.model_dump()))
    return asdict(manager.get_stats())


@router.get("/stats")
def index_stats(manager: SearchManager = Depends(get_manager)):
    return {**asdict(manager.get_stats()), "config": manager.get_search_config()}
