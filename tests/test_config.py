"""
Tests for configuration loading
"""
import pytest

from mailsearch.config import load_config, graph_settings, auth_settings
from mailsearch.errors import ConfigurationError, STAGE_CONFIGURATION


class TestLoadConfig:
    """Tests for INI configuration"""

    def test_missing_file_gives_defaults(self, tmp_path):
        """Test defaults apply when no config file exists"""
        cfg = load_config(str(tmp_path / "missing.ini"))

        graph = graph_settings(cfg)
        assert graph["base_url"] == "https://graph.microsoft.com/v1.0"
        assert graph["timeout"] == 30.0
        assert graph["page_size"] is None
        assert graph["max_pages"] == 1000
        assert graph["include_hidden_folders"] is False
        assert cfg.get("system", "log_level") == "INFO"

    def test_file_values_override_defaults(self, tmp_path):
        """Test values in the file win over defaults"""
        path = tmp_path / "config.ini"
        path.write_text(
            "[graph]\n"
            "base_url = https://graph.microsoft.com/beta/\n"
            "page_size = 50\n"
            "max_pages = 0\n"
            "include_hidden_folders = yes\n"
            "[auth]\n"
            "client_id = app-id\n"
            "tenant_id = contoso\n"
            "method = Device\n"
            "scopes = Mail.Read, User.Read\n"
        )

        cfg = load_config(str(path))
        graph = graph_settings(cfg)
        auth = auth_settings(cfg)

        assert graph["base_url"] == "https://graph.microsoft.com/beta"
        assert graph["page_size"] == 50
        assert graph["max_pages"] is None
        assert graph["include_hidden_folders"] is True
        assert auth["client_id"] == "app-id"
        assert auth["tenant_id"] == "contoso"
        assert auth["method"] == "device"
        assert auth["scopes"] == ["Mail.Read", "User.Read"]

    def test_environment_overrides(self, tmp_path, monkeypatch):
        """Test MAIL_SEARCH_* variables take precedence"""
        path = tmp_path / "config.ini"
        path.write_text("[auth]\nclient_id = from-file\n")
        monkeypatch.setenv("MAIL_SEARCH_CLIENT_ID", "from-env")
        monkeypatch.setenv("MAIL_SEARCH_TENANT_ID", "tenant-env")

        auth = auth_settings(load_config(str(path)))

        assert auth["client_id"] == "from-env"
        assert auth["tenant_id"] == "tenant-env"

    def test_empty_token_cache_means_memory_only(self, tmp_path, monkeypatch):
        """Test a blank token_cache disables the cache file"""
        monkeypatch.delenv("MAIL_SEARCH_CLIENT_ID", raising=False)
        path = tmp_path / "config.ini"
        path.write_text("[auth]\ntoken_cache =\n")

        assert auth_settings(load_config(str(path)))["token_cache"] is None

    def test_inline_comments_stripped(self, tmp_path):
        """Test a trailing ; or # comment is not part of the value"""
        path = tmp_path / "config.ini"
        path.write_text("[graph]\nmax_pages = 10 ; per folder\ntimeout = 5 # seconds\n")

        graph = graph_settings(load_config(str(path)))

        assert graph["max_pages"] == 10
        assert graph["timeout"] == 5.0

    def test_non_numeric_value_rejected(self, tmp_path):
        """Test a malformed number is a configuration error"""
        path = tmp_path / "config.ini"
        path.write_text("[graph]\ntimeout = abc\n")

        with pytest.raises(ConfigurationError, match="timeout|abc") as exc_info:
            graph_settings(load_config(str(path)))

        assert exc_info.value.stage == STAGE_CONFIGURATION

    def test_unparseable_file_rejected(self, tmp_path):
        """Test a file with no section header is a configuration error"""
        path = tmp_path / "config.ini"
        path.write_text("timeout = 5\n")

        with pytest.raises(ConfigurationError, match="Cannot parse"):
            load_config(str(path))
