from fastapi import Request

from mail_search import SearchManager


def get_manager(request: Request) -> SearchManager:
    return request.app.state.search_manager
