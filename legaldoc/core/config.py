from pydantic import field_validator
from pydantic_settings import BaseSettings as PydanticBaseSettings


class Settings(PydanticBaseSettings):
    # 基础配置
    PROJECT_NAME: str = "Legal Document Rendering Service"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"

    # 服务器配置
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # 数据库配置（审阅会话持久化）
    DATABASE_URL: str = "sqlite:///./legaldoc.db"
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 20
    DATABASE_ECHO: bool = False  # 开发时可设为True用于调试

    # AI起草配置
    OPENAI_API_KEY: str | None = None
    DRAFTING_MODEL: str = "gpt-4o"
    DRAFTING_TEMPERATURE: float = 0.2

    # 电子签名服务配置
    SIGNATURE_CLIENT_ID: str | None = None
    SIGNATURE_CLIENT_SECRET: str | None = None
    SIGNATURE_IDENTITY_URL: str = "https://selise.app/api/identity/v100/identity/token"
    SIGNATURE_STORAGE_URL: str = (
        "https://selise.app/api/storageservice/v100/StorageService/StorageQuery/GetPreSignedUrlForUpload"
    )
    SIGNATURE_PREPARE_URL: str = "https://selise.app/api/selisign/s1/SeliSign/ExternalApp/PrepareContract"
    SIGNATURE_ROLLOUT_URL: str = "https://selise.app/api/selisign/s1/SeliSign/ExternalApp/RolloutContract"
    SIGNATURE_EVENTS_URL: str = "https://selise.app/api/selisign/s1/SeliSign/ExternalApp/GetEvents"
    SIGNATURE_REQUEST_TIMEOUT: int = 30  # 秒
    SIGNATURE_EVENT_POLL_ATTEMPTS: int = 10
    SIGNATURE_EVENT_POLL_INTERVAL: float = 2.0  # 秒

    # 文档渲染配置
    PDF_PAGE_SIZE: str = "LETTER"  # LETTER, A4, LEGAL
    MAX_FILENAME_LENGTH: int = 100

    # CORS配置
    # 默认允许本地开发环境，生产环境应通过环境变量配置具体域名
    BACKEND_CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: list[str] | str) -> list[str]:
        """
        将CORS来源配置转换为URL列表

        支持两种格式：
        1. 逗号分隔的字符串: "http://localhost:3000,http://localhost:8080"
        2. 列表: ["http://localhost:3000", "http://localhost:8080"]
        """
        if isinstance(v, str):
            if not v.strip() or v.strip() == "[]":
                return []
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        elif isinstance(v, list):
            return v
        raise ValueError(f"BACKEND_CORS_ORIGINS must be a comma-separated string or list of URLs, got: {type(v)}")

    @field_validator("PDF_PAGE_SIZE")
    @classmethod
    def validate_page_size(cls, v: str) -> str:
        """页面尺寸只支持 LETTER / A4 / LEGAL"""
        value = v.strip().upper()
        if value not in ("LETTER", "A4", "LEGAL"):
            raise ValueError(f"Unsupported PDF_PAGE_SIZE: {v}")
        return value

    # 日志配置
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    class Config:
        env_file: str = ".env"
        case_sensitive: bool = True


settings = Settings()
