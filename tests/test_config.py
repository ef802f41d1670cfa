"""Tests for the task schema and application settings."""

import pytest
from pydantic import ValidationError

from src.config import AppConfig, StorageConfig, TaskConfig, app_config
from src.config.settings import Settings
from src.schemas.task import TaskConfiguration

PAYLOAD: dict = {
    "source": {"bucket": "archives", "region": "eu-west-1", "key": "data/archive.tar.gz"},
    "target": {"bucket": "extracted", "region": "eu-west-1", "prefix": "out"},
    "extraRootDir": "DirName,BaseName",
    "maxTryTime": 5,
}


class TestTaskConfiguration:
    """Tests for TaskConfiguration."""

    def test_camel_case_payload(self) -> None:
        config = TaskConfiguration.model_validate(PAYLOAD)

        assert config.source.key == "data/archive.tar.gz"
        assert config.target.prefix == "out"
        assert config.max_try_time == 5
        assert config.extra_root_dir == "dirname,basename"
        assert config.include_dirname and config.include_basename

    def test_defaults(self) -> None:
        config = TaskConfiguration(
            source={"bucket": "a", "region": "r", "key": "k.tar.gz"},
            target={"bucket": "b", "region": "r"},
        )

        assert config.max_try_time == 3
        assert config.target.prefix == ""
        assert not config.include_dirname and not config.include_basename

    def test_null_extra_root_dir(self) -> None:
        config = TaskConfiguration.model_validate({**PAYLOAD, "extraRootDir": None})
        assert config.extra_root_dir == ""

    @pytest.mark.parametrize("max_try_time", [0, -1])
    def test_retry_budget_must_be_positive(self, max_try_time: int) -> None:
        with pytest.raises(ValidationError):
            TaskConfiguration.model_validate({**PAYLOAD, "maxTryTime": max_try_time})

    def test_source_key_required(self) -> None:
        payload = {**PAYLOAD, "source": {"bucket": "archives", "region": "eu-west-1"}}
        with pytest.raises(ValidationError):
            TaskConfiguration.model_validate(payload)

    def test_frozen(self) -> None:
        config = TaskConfiguration.model_validate(PAYLOAD)
        with pytest.raises(ValidationError):
            config.max_try_time = 10  # type: ignore[misc]


class TestSettings:
    """Tests for Settings and the YAML application config."""

    def test_endpoint_url_for_minio(self) -> None:
        settings = Settings(AWS_S3_HOST="minio", AWS_S3_PORT="9000", AWS_S3_USE_SSL=False)
        assert settings.aws_s3_endpoint_url == "http://minio:9000"

    def test_no_endpoint_without_host(self) -> None:
        assert Settings(AWS_S3_HOST=None).aws_s3_endpoint_url is None

    def test_invalid_port(self) -> None:
        with pytest.raises(ValidationError):
            Settings(AWS_S3_HOST="minio", AWS_S3_PORT=70000)

    def test_yaml_config_loaded(self) -> None:
        assert isinstance(app_config, AppConfig)
        assert isinstance(app_config.storage_config, StorageConfig)
        assert isinstance(app_config.task_config, TaskConfig)
        assert app_config.task_config.relay_queue_size >= 2
        assert app_config.storage_config.multipart_chunksize >= 5 * 1024 * 1024
