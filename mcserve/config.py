from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="MCSERVE_", extra="ignore")

    ENV: str = "local"
    LOG_LEVEL: str = "INFO"
    JSON_LOGGING: bool = False

    # container runtime selection: "auto", "podman" or "docker"
    CONTAINER_RUNTIME: str = "auto"
    # skips detection entirely when set
    CONTAINER_SOCKET: str | None = None
    CONTAINER_TIMEOUT: float = 30.0  # seconds
    CONTAINER_WAIT_POLL_INTERVAL: float = 0.1  # seconds


settings = Settings()
