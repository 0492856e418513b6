from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_path: str = "data/matches.db"

    # Upper bound on a single load/save round-trip to the database
    persistence_timeout_seconds: float = 5.0

    # SSE keepalive interval for idle match streams
    stream_keepalive_seconds: float = 15.0

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
