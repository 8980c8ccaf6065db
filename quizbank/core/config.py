# quizbank/core/config.py
from typing import List
from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Gestiona la configuración de la aplicación cargando variables de entorno.
    Utiliza Pydantic para la validación de tipos.
    """
    model_config = SettingsConfigDict(
        env_file=".env", env_ignore_case=True, extra="ignore"
    )

    # --- Banco de preguntas ---
    QUESTION_BANK_DIR: str = "data"
    CATALOG_CACHE_ENABLED: bool = True
    DEFAULT_QUESTION_COUNT: int = 5

    # --- Sesión ---
    SECRET_KEY: str = "dev-secret-key-change-me"
    SESSION_COOKIE_NAME: str = "quizbank_session"
    SESSION_TTL_SECONDS: int = 7200

    # --- CORS ---
    CORS_ORIGINS: str = "*"

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = True

    @computed_field
    @property
    def CORS_ORIGIN_LIST(self) -> List[str]:
        """
        Lista de orígenes permitidos a partir de CORS_ORIGINS (separados por comas).
        """
        raw = (self.CORS_ORIGINS or "").strip()
        if not raw or raw == "*":
            return ["*"]
        return [origin.strip() for origin in raw.split(",") if origin.strip()]


# Instancia única de la configuración que será usada en toda la aplicación.
settings = Settings()
