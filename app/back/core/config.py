# app/back/core/config.py
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # 토큰 서명용 키 (운영환경에서는 .env 로 관리)
    SECRET_KEY: str = "change-this-secret-in-env"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # 환경
    ENV: str = "local"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # 업로드 루트 (temp / admin-models / admin-textures 가 이 아래에 생김)
    UPLOAD_DIR: Path = Path("uploads")
    PUBLIC_UPLOAD_PREFIX: str = "/uploads"

    MAX_UPLOAD_SIZE: int = 100 * 1024 * 1024
    MAX_TEXTURE_FILES: int = 10

    # 임시 업로드 만료 / 정리 주기
    TEMP_MAX_AGE_SECONDS: int = 24 * 60 * 60
    CLEANUP_INTERVAL_SECONDS: int = 60 * 60

    # 시작 시 생성되는 관리자 계정
    ADMIN_USERNAME: str = "admin"
    ADMIN_PASSWORD: str = "admin123"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
