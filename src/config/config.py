from dataclasses import dataclass, field
from pathlib import Path

from omegaconf import DictConfig, OmegaConf
from pydantic import BaseModel, Field

from src import ROOT


@dataclass(slots=True, kw_only=True)
class StorageConfig:
    max_attempts: int = field(default=3, metadata={"description": "Maximum botocore request attempts"})
    retry_mode: str = field(default="adaptive", metadata={"description": "botocore retry mode"})
    multipart_threshold: int = field(
        default=8 * 1024 * 1024, metadata={"description": "Entry size above which multipart upload is used"}
    )
    multipart_chunksize: int = field(
        default=8 * 1024 * 1024, metadata={"description": "Multipart part size in bytes"}
    )
    max_concurrency: int = field(
        default=4, metadata={"description": "Concurrent part uploads per entry"}
    )


@dataclass(slots=True, kw_only=True)
class TaskConfig:
    max_try_time: int = field(default=3, metadata={"description": "Maximum full-archive attempts"})
    retry_delay: float = field(
        default=1.0, metadata={"description": "Base delay between attempts in seconds (doubled each time)"}
    )
    chunk_size: int = field(
        default=64 * 1024, metadata={"description": "Bytes read from an archive entry per chunk"}
    )
    relay_queue_size: int = field(
        default=8, metadata={"description": "Chunks buffered between an entry and its upload"}
    )


class AppConfig(BaseModel):
    """Application configuration with validation."""

    storage_config: StorageConfig = Field(
        default_factory=StorageConfig, description="Configuration settings for the object store client"
    )
    task_config: TaskConfig = Field(
        default_factory=TaskConfig, description="Configuration settings for archive tasks"
    )


config_path: Path = ROOT / "config/config.yaml"
config: DictConfig = OmegaConf.load(config_path).config
resolved_cfg = OmegaConf.to_container(config, resolve=True)
app_config: AppConfig = AppConfig(**dict(resolved_cfg))  # type: ignore
