"""
Configuration Store Tests

Covers the secrets file written by ``omni setup``:
1. Save/load round-trip, including values that need quoting
2. Missing and incomplete files are reported, never half-loaded
3. The file is replaced atomically and readable only by its owner
4. ``Settings`` reads its OMNI_* environment variables
"""

import os
import stat
import sys
from pathlib import Path

import pytest

from omni.config import ConfigStore, Credentials, ENV_NAMES, Settings
from omni.errors import (
    ConfigError,
    ConfigIncompleteError,
    ConfigInvalidValueError,
    ConfigMissingError,
)


def make_credentials(**overrides) -> Credentials:
    values = {
        "vault_client_id": "user.abc",
        "vault_client_secret": "s3cret",
        "vault_master_password": "master",
        "erp_base_url": "https://erp.example.com/ERP11",
        "erp_api_key": "key-123",
        "erp_username": "svc_omni",
        "erp_password": "pw",
    }
    values.update(overrides)
    return Credentials(**values)


class TestConfigStoreRoundTrip:
    """Save then load returns the same credentials."""

    def test_round_trip(self, tmp_path):
        store = ConfigStore(tmp_path / ".env")
        creds = make_credentials()
        store.save(creds)
        assert store.load() == creds

    def test_round_trip_with_special_characters(self, tmp_path):
        """Quotes, backslashes, '=', '#', '$' and spaces survive unchanged."""
        store = ConfigStore(tmp_path / ".env")
        creds = make_credentials(
            vault_master_password="it's a \\ pass=word # not a comment",
            erp_password="${HOME} and $USER",
            erp_api_key="  padded  ",
        )
        store.save(creds)
        assert store.load() == creds

    def test_file_uses_documented_names(self, tmp_path):
        path = tmp_path / ".env"
        ConfigStore(path).save(make_credentials())

        names = [line.split("=", 1)[0] for line in path.read_text().splitlines()]
        assert names == list(ENV_NAMES.values())
        assert "BW_CLIENTID" in names
        assert "MASTER_PASSWORD" in names

    def test_save_replaces_previous_file(self, tmp_path):
        store = ConfigStore(tmp_path / ".env")
        store.save(make_credentials(erp_username="first"))
        store.save(make_credentials(erp_username="second"))
        assert store.load().erp_username == "second"

    def test_save_creates_parent_directory(self, tmp_path):
        store = ConfigStore(tmp_path / "nested" / "dir" / ".env")
        store.save(make_credentials())
        assert store.path.is_file()

    def test_no_temp_files_left_behind(self, tmp_path):
        ConfigStore(tmp_path / ".env").save(make_credentials())
        assert sorted(p.name for p in tmp_path.iterdir()) == [".env"]

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_file_is_owner_only(self, tmp_path):
        path = tmp_path / ".env"
        ConfigStore(path).save(make_credentials())
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600


class TestConfigStoreFailures:
    """Unusable files and values are reported as ConfigError."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigMissingError) as exc_info:
            ConfigStore(tmp_path / "absent.env").load()
        assert "omni setup" in str(exc_info.value)
        assert exc_info.value.exit_code == 3

    def test_incomplete_file_lists_missing_names(self, tmp_path):
        path = tmp_path / ".env"
        path.write_text("BW_CLIENTID='abc'\nBW_CLIENTSECRET='def'\n")

        with pytest.raises(ConfigIncompleteError) as exc_info:
            ConfigStore(path).load()

        missing = exc_info.value.missing
        assert "MASTER_PASSWORD" in missing
        assert "EPICOR_PASSWORD" in missing
        assert "BW_CLIENTID" not in missing

    def test_empty_value_counts_as_missing(self, tmp_path):
        path = tmp_path / ".env"
        ConfigStore(path).save(make_credentials())
        text = path.read_text().replace("EPICOR_PASSWORD='pw'", "EPICOR_PASSWORD=")
        path.write_text(text)

        with pytest.raises(ConfigIncompleteError) as exc_info:
            ConfigStore(path).load()
        assert exc_info.value.missing == ["EPICOR_PASSWORD"]

    def test_line_break_rejected_without_touching_file(self, tmp_path):
        path = tmp_path / ".env"
        store = ConfigStore(path)
        store.save(make_credentials())
        before = path.read_text()

        with pytest.raises(ConfigInvalidValueError):
            store.save(make_credentials(erp_password="line1\nline2"))

        assert path.read_text() == before

    def test_all_config_errors_share_base(self):
        assert issubclass(ConfigMissingError, ConfigError)
        assert issubclass(ConfigIncompleteError, ConfigError)
        assert issubclass(ConfigInvalidValueError, ConfigError)


class TestCredentials:
    def test_repr_hides_secrets(self):
        text = repr(make_credentials())
        assert "s3cret" not in text
        assert "master" not in text
        assert "key-123" not in text
        assert "svc_omni" in text


class TestSettings:
    """Settings.from_env reads OMNI_* variables."""

    def test_defaults(self):
        s = Settings.from_env({})
        assert s.config_path == Path.home() / ".omni" / ".env"
        assert s.bw_identity_url == "https://identity.bitwarden.com"
        assert s.epicor_company == "100"
        assert s.epicor_library == "Omni"
        assert s.timeout_seconds == 30.0
        assert s.log_json is False

    def test_overrides(self, tmp_path):
        s = Settings.from_env({
            "OMNI_CONFIG": str(tmp_path / "alt.env"),
            "OMNI_BW_API_URL": "http://127.0.0.1:9000/",
            "OMNI_EPICOR_COMPANY": "200",
            "OMNI_HTTP_TIMEOUT": "2.5",
            "OMNI_LOG_LEVEL": "debug",
            "OMNI_LOG_JSON": "true",
        })
        assert s.config_path == tmp_path / "alt.env"
        assert s.bw_api_url == "http://127.0.0.1:9000"
        assert s.epicor_company == "200"
        assert s.timeout_seconds == 2.5
        assert s.log_level == "DEBUG"
        assert s.log_json is True

    def test_bad_timeout(self):
        with pytest.raises(ValueError, match="OMNI_HTTP_TIMEOUT"):
            Settings.from_env({"OMNI_HTTP_TIMEOUT": "soon"})
