"""配置模块测试 -- 环境变量覆盖与无效值回退"""

from pathlib import Path

from commentflow.core.config import (
    EngineConfig,
    get_artifacts_dir,
    get_db_path,
    load_document_api_config,
    load_engine_config,
)


class TestEngineConfig:
    """EngineConfig 加载"""

    def test_defaults(self, monkeypatch):
        for name in (
            "COMMENTFLOW_CACHE_DEFAULT_TTL_MS",
            "COMMENTFLOW_NODE_SNAPSHOT_TTL_MS",
            "COMMENTFLOW_DISPATCH_MAX_RETRIES",
        ):
            monkeypatch.delenv(name, raising=False)
        config = load_engine_config()
        assert config == EngineConfig()
        assert config.cache_default_ttl_ms == 300_000
        assert config.node_snapshot_ttl_ms == 5_000
        assert config.dispatch_max_retries == 3
        assert config.artifact_inline_threshold == 4096

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("COMMENTFLOW_NODE_SNAPSHOT_TTL_MS", "2500")
        monkeypatch.setenv("COMMENTFLOW_DISPATCH_BACKOFF_MULTIPLIER", "1.5")
        config = load_engine_config()
        assert config.node_snapshot_ttl_ms == 2500
        assert config.dispatch_backoff_multiplier == 1.5

    def test_invalid_value_falls_back(self, monkeypatch):
        monkeypatch.setenv("COMMENTFLOW_DISPATCH_MAX_RETRIES", "lots")
        config = load_engine_config()
        assert config.dispatch_max_retries == 3

    def test_out_of_range_value_falls_back(self, monkeypatch):
        monkeypatch.setenv("COMMENTFLOW_DISPATCH_MAX_RETRIES", "-1")
        monkeypatch.setenv("COMMENTFLOW_NODE_SNAPSHOT_TTL_MS", "0")
        monkeypatch.setenv("COMMENTFLOW_DISPATCH_BACKOFF_MULTIPLIER", "0.5")
        monkeypatch.setenv("COMMENTFLOW_CACHE_DEFAULT_TTL_MS", "60000")

        config = load_engine_config()

        assert config.dispatch_max_retries == 3
        assert config.node_snapshot_ttl_ms == 5_000
        assert config.dispatch_backoff_multiplier == 2.0
        assert config.cache_default_ttl_ms == 60_000


class TestPaths:
    """路径配置"""

    def test_data_dir_base(self, monkeypatch, tmp_path: Path):
        monkeypatch.delenv("COMMENTFLOW_DB_PATH", raising=False)
        monkeypatch.delenv("COMMENTFLOW_ARTIFACTS_DIR", raising=False)
        monkeypatch.setenv("COMMENTFLOW_DATA_DIR", str(tmp_path))
        assert get_db_path() == str(tmp_path / "sqlite" / "commentflow.db")
        assert get_artifacts_dir() == tmp_path / "artifacts"

    def test_explicit_db_path(self, monkeypatch):
        monkeypatch.setenv("COMMENTFLOW_DB_PATH", "/tmp/x.db")
        assert get_db_path() == "/tmp/x.db"


class TestDocumentApiConfig:
    """文档 API 访问配置"""

    def test_unconfigured(self, monkeypatch):
        monkeypatch.delenv("COMMENTFLOW_ACCESS_TOKEN", raising=False)
        config = load_document_api_config()
        assert config.is_configured() is False
        assert config.get_access_token() is None

    def test_configured_token_is_secret(self, monkeypatch):
        monkeypatch.setenv("COMMENTFLOW_ACCESS_TOKEN", "figd_secret")
        config = load_document_api_config()
        assert config.is_configured() is True
        assert config.get_access_token() == "figd_secret"
        assert "figd_secret" not in repr(config)
