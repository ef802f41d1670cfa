from .config import AppConfig, StorageConfig, TaskConfig, app_config
from .settings import Settings, app_settings

__all__ = ["AppConfig", "Settings", "StorageConfig", "TaskConfig", "app_config", "app_settings"]
