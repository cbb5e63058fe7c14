class MailSearchError(Exception):
    pass


class SearchEngineNotInitializedError(MailSearchError):
    def __init__(self, message: str = "Search index has not been built yet"):
        super().__init__(message)


class InvalidQueryError(MailSearchError):
    def __init__(self, query: str | None, reason: str):
        super().__init__(f"Invalid search query: {reason}")
        self.query = query
        self.reason = reason


class RemoteSearchError(MailSearchError):
    pass
