from pydantic_settings import BaseSettings


class ApiSettings(BaseSettings):
    model_config = {"env_prefix": "MAIL_SEARCH_API_"}

    cors_origins: str = "http://localhost:5173"
    log_buffer_size: int = 1000

    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = ApiSettings()
