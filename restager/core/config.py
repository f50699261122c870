import os
from dotenv import load_dotenv

from .exceptions import ConfigurationError

# 加载环境变量
load_dotenv()


def _env_key(name):
    """读取密钥类环境变量，去掉首尾空白，空字符串视为未设置"""
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


class Settings:
    # 服务商API密钥
    KIEAI_API_KEY: str = _env_key("KIEAI_API_KEY")
    GEMINI_API_KEY: str = _env_key("GEMINI_API_KEY")
    OPENAI_API_KEY: str = _env_key("OPENAI_API_KEY")
    IMGBB_API_KEY: str = _env_key("IMGBB_API_KEY")

    # 服务商配置
    RESTAGE_PROVIDER: str = os.getenv("RESTAGE_PROVIDER", "kie")
    KIE_BASE_URL: str = os.getenv("KIE_BASE_URL", "https://api.kie.ai/api/v1/playground")
    KIE_MODEL: str = os.getenv("KIE_MODEL", "google/nano-banana-edit")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash-image")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-image-1")
    OPENAI_IMAGE_QUALITY: str = os.getenv("OPENAI_IMAGE_QUALITY", "high")

    # 轮询配置
    POLL_INTERVAL_MS: int = int(os.getenv("POLL_INTERVAL_MS", "2000"))
    POLL_MAX_ATTEMPTS: int = int(os.getenv("POLL_MAX_ATTEMPTS", "60"))
    POLL_FIRST_DELAY_MS: int = int(os.getenv("POLL_FIRST_DELAY_MS")) if os.getenv("POLL_FIRST_DELAY_MS") else None

    # 网络与图床配置
    REQUEST_TIMEOUT: int = int(os.getenv("REQUEST_TIMEOUT", "30"))
    DOWNLOAD_TIMEOUT: int = int(os.getenv("DOWNLOAD_TIMEOUT", "15"))
    IMGBB_EXPIRATION: int = int(os.getenv("IMGBB_EXPIRATION", "600"))

    # 批处理配置
    MAX_FILES: int = int(os.getenv("MAX_FILES", "10"))
    MAX_CONCURRENT_RESTAGES: int = int(os.getenv("MAX_CONCURRENT_RESTAGES", "1"))

    # 应用配置
    APP_TITLE: str = "Room Restaging Service"
    APP_DESCRIPTION: str = "Virtually restage room photos through generative image providers"
    APP_VERSION: str = "1.0.0"

    # 服务器配置
    HOST: str = "0.0.0.0"
    PORT: int = int(os.getenv("PORT", "5000"))

    # 日志配置
    LOG_FILE: str = "logs/app.log"
    LOG_BACKUP_FILE: str = "logs/app_backup.log"
    LOG_MAX_BYTES: int = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT: int = 5

    # 每个服务商依赖的密钥
    PROVIDER_KEYS = {
        "kie": "KIEAI_API_KEY",
        "gemini": "GEMINI_API_KEY",
        "openai": "OPENAI_API_KEY",
        "imgbb": "IMGBB_API_KEY",
    }

    def require(self, name):
        """取出必需的密钥，缺失时立即抛出 ConfigurationError"""
        value = getattr(self, name, None)
        if not value:
            raise ConfigurationError(f"{name} is not configured", setting=name)
        return value

    def validate(self):
        """启动时校验一次配置，返回各服务商是否可用（只含布尔值，不含密钥）"""
        if self.POLL_INTERVAL_MS < 0:
            raise ConfigurationError("POLL_INTERVAL_MS must not be negative", setting="POLL_INTERVAL_MS")
        if self.POLL_MAX_ATTEMPTS < 1:
            raise ConfigurationError("POLL_MAX_ATTEMPTS must be at least 1", setting="POLL_MAX_ATTEMPTS")
        if self.MAX_CONCURRENT_RESTAGES < 1:
            raise ConfigurationError("MAX_CONCURRENT_RESTAGES must be at least 1", setting="MAX_CONCURRENT_RESTAGES")
        return {provider: bool(getattr(self, key, None)) for provider, key in self.PROVIDER_KEYS.items()}


# 创建全局配置实例
settings = Settings()
