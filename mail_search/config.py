from pydantic_settings import BaseSettings


class SearchSettings(BaseSettings):
    model_config = {"env_prefix": "MAIL_SEARCH_"}

    max_history_size: int = 50
    max_suggestions: int = 10
    max_query_length: int = 500
    remote_timeout: float = 10.0

    subject_weight: int = 10
    participant_weight: int = 5
    body_weight: int = 1

    imap_host: str = ""
    imap_port: int = 993
    imap_user: str = ""
    imap_password: str = ""
    imap_mailbox: str = "INBOX"
    imap_use_ssl: bool = True


def get_settings() -> SearchSettings:
    return SearchSettings()


class _LazySettings:
    _instance: SearchSettings | None = None

    def __getattr__(self, name: str):
        if self._instance is None:
            self._instance = get_settings()
        return getattr(self._instance, name)


settings = _LazySettings()
