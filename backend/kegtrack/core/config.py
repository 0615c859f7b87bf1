from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    env: str = "dev"
    database_url: str = "postgresql+psycopg2://kegtrack:kegtrack@db:5432/kegtrack"
    backend_cors_origins: str = "http://localhost:3000"

    # Tokens are issued by the external identity provider; we only verify them
    auth_secret: str = "change_me_super_secret"
    jwt_algorithm: str = "HS256"
    default_role: str = "Operador"

    # Reglas de negocio
    critical_days: int = 30
    events_page_size: int = 10
    customers_page_size: int = 15
    movement_max_retries: int = 3
    max_batch_size: int = 100

    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        origins = self.backend_cors_origins
        return [origin.strip() for origin in origins.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        env_prefix = "KEGTRACK_"
        case_sensitive = False


settings = Settings()
