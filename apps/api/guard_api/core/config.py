from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    database_url: str
    env: str = "development"
    log_level: str = "INFO"

    # Comma-separated, e.g. CORS_ORIGINS="http://localhost:8081,https://guards.example.org"
    cors_origins: str = ""

    # Writes that leave the security license expiring within this window are logged
    expiry_warning_days: int = 30

    # Dev convenience; deployments run `alembic upgrade head` instead
    auto_create_tables: bool = False

    class Config:
        env_file = ".env"

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"

    def allowed_origins(self) -> list[str]:
        origins = [o.strip() for o in self.cors_origins.split(",") if o.strip()]
        # Safe fallback for local dev if env var not set
        if not origins:
            origins = [
                "http://localhost:3000",
                "http://127.0.0.1:3000",
                "http://localhost:8081",
                "http://127.0.0.1:8081",
            ]
        return origins
