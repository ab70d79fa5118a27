import copy
import os
from pathlib import Path

import pytest

from vein.config.database import DatabaseConfig, SqliteBackend
from vein.config.loader import Config, ConfigError
from vein.config.sections import UpstreamConfig, parse_uri


def _workers():
    return os.cpu_count() or 1


# === DEFAULT VALUES ===


def test_default_config():
    config = Config()
    assert config.server.host == "0.0.0.0"
    assert config.server.port == 8346
    assert config.server.workers == _workers()
    assert config.upstream is None
    assert config.storage.path == Path("./gems")
    assert config.database.path == Path("./vein.db")
    assert config.database.url is None
    assert config.database.max_connections == 16
    assert config.logging.level == "info"
    assert config.logging.json is False
    assert config.delay_policy.enabled is False


# === TOML PARSING ===


def test_parse_minimal_config():
    config = Config.from_toml(
        """
        [server]
        host = "127.0.0.1"
        port = 8080
        """
    )
    assert config.server.host == "127.0.0.1"
    assert config.server.port == 8080
    assert config.upstream is None


def test_parse_full_config():
    config = Config.from_toml(
        """
        [server]
        host = "0.0.0.0"
        port = 3000
        workers = 4

        [upstream]
        url = "https://example.com/"
        timeout_secs = 60
        connection_pool_size = 256

        [storage]
        path = "/var/lib/vein/gems"

        [database]
        path = "/var/lib/vein/db.sqlite"

        [logging]
        level = "debug"
        json = true
        """
    )
    assert config.server.host == "0.0.0.0"
    assert config.server.port == 3000
    assert config.server.workers == 4

    upstream = config.upstream
    assert str(upstream.url) == "https://example.com/"
    assert upstream.timeout_secs == 60
    assert upstream.connection_pool_size == 256

    assert config.storage.path == Path("/var/lib/vein/gems")
    assert config.database.path == Path("/var/lib/vein/db.sqlite")
    assert config.database.url is None
    assert config.database.max_connections == 16

    assert config.logging.level == "debug"
    assert config.logging.json is True


def test_parse_config_with_defaults():
    config = Config.from_toml("[server]\nport = 9000\n")
    assert config.server.host == "0.0.0.0"
    assert config.server.port == 9000
    assert config.server.workers == _workers()


def test_parse_empty_config():
    config = Config.from_toml("")
    assert config.server.host == "0.0.0.0"
    assert config.server.port == 8346
    assert config.upstream is None


def test_parse_delay_policy_section():
    config = Config.from_toml(
        """
        [delay_policy]
        enabled = true
        default_delay_days = 5
        """
    )
    assert config.delay_policy.enabled is True
    assert config.delay_policy.default_delay_days == 5


def test_parse_wrong_type_raises():
    with pytest.raises(ConfigError):
        Config.from_toml('[server]\nport = "eighty"\n')


def test_parse_invalid_toml_raises():
    with pytest.raises(ConfigError):
        Config.from_toml("invalid { toml content")


# === LOADING FILES ===


def test_load_config_from_existing_file(tmp_path):
    config_path = tmp_path / "vein.toml"
    config_path.write_text(
        """
        [server]
        host = "127.0.0.1"
        port = 4000

        [storage]
        path = "my-gems"
        """
    )
    config = Config.load(config_path)
    assert config.server.host == "127.0.0.1"
    assert config.server.port == 4000
    assert config.storage.path == tmp_path / "my-gems"


def test_load_config_nonexistent_file_uses_defaults(tmp_path):
    config = Config.load(tmp_path / "nonexistent.toml")
    assert config.server.host == "0.0.0.0"
    assert config.server.port == 8346


def test_load_config_no_path_provided(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config = Config.load(None)
    assert config.server.port == 8346
    assert config.storage.path == Path.cwd() / "gems"
    assert config.database.path == Path.cwd() / "vein.db"


def test_load_config_default_file_in_cwd(tmp_path, monkeypatch):
    (tmp_path / "vein.toml").write_text("[server]\nport = 7000\n")
    monkeypatch.chdir(tmp_path)
    config = Config.load()
    assert config.server.port == 7000


def test_load_config_invalid_toml(tmp_path):
    bad = tmp_path / "bad.toml"
    bad.write_text("invalid { toml content")
    with pytest.raises(ConfigError, match="invalid config"):
        Config.load(bad)


def test_load_config_invalid_value(tmp_path):
    bad = tmp_path / "bad.toml"
    bad.write_text('[upstream]\nurl = "not a valid url"\n')
    with pytest.raises(ConfigError, match="invalid config"):
        Config.load(bad)


def test_load_config_unreadable_path(tmp_path):
    directory = tmp_path / "is-a-dir.toml"
    directory.mkdir()
    with pytest.raises(ConfigError, match="failed to read config"):
        Config.load(directory)


def test_load_config_missing_absolute_path_uses_defaults():
    config = Config.load("/nonexistent/path/config.toml")
    assert config.server.port == 8346


def test_config_normalizes_paths_on_load(tmp_path):
    config_path = tmp_path / "test.toml"
    config_path.write_text(
        """
        [storage]
        path = "relative-gems"

        [database]
        path = "relative.db"
        """
    )
    config = Config.load(config_path)
    assert config.storage.path == tmp_path / "relative-gems"
    assert config.database.path == tmp_path / "relative.db"
    assert config.database.url is None


def test_config_sqlite_url_sets_path(tmp_path):
    config_path = tmp_path / "vein.toml"
    config_path.write_text('[database]\nurl = "sqlite://./db/vein.sqlite"\n')
    config = Config.load(config_path)

    expected = tmp_path / "db" / "vein.sqlite"
    assert config.database.path.is_absolute()
    assert config.database.path == expected
    backend = config.database.backend()
    assert backend == SqliteBackend(path=expected)


def test_parent_directory_resolution(tmp_path):
    subdir = tmp_path / "configs"
    subdir.mkdir()
    config_path = subdir / "vein.toml"
    config_path.write_text('[storage]\npath = "gems"\n')
    config = Config.load(config_path)
    assert config.storage.path == subdir / "gems"


# === VALIDATION ===


def _with_upstream(url):
    return Config(
        upstream=UpstreamConfig(url=parse_uri(url), timeout_secs=30, connection_pool_size=128)
    )


def test_validate_https_upstream():
    config = _with_upstream("https://rubygems.org/")
    config.validate()
    assert config.upstream.url.scheme == "https"


def test_validate_http_upstream():
    config = _with_upstream("http://localhost:8346/")
    config.validate()
    assert config.upstream.url.scheme == "http"


def test_validate_invalid_scheme():
    config = _with_upstream("ftp://example.com/")
    with pytest.raises(ConfigError, match="unsupported upstream scheme"):
        config.validate()


def test_validate_no_upstream():
    config = Config(upstream=None)
    config.validate()
    assert config.upstream is None


def test_validate_bad_database_url():
    config = Config(database=DatabaseConfig(url="mysql://localhost/db"))
    with pytest.raises(ConfigError, match="unsupported database url scheme"):
        config.validate()


# === URL DESERIALIZATION ===


def test_deserialize_valid_url():
    config = Config.from_toml('[upstream]\nurl = "https://rubygems.org/"\n')
    assert str(config.upstream.url) == "https://rubygems.org/"


def test_deserialize_invalid_url():
    with pytest.raises(ConfigError):
        Config.from_toml('[upstream]\nurl = "not a valid url"\n')


def test_url_with_path():
    config = Config.from_toml('[upstream]\nurl = "https://example.com/rubygems/"\n')
    assert str(config.upstream.url) == "https://example.com/rubygems/"


def test_url_with_port():
    config = Config.from_toml('[upstream]\nurl = "https://example.com:8443/"\n')
    assert str(config.upstream.url) == "https://example.com:8443/"


def test_upstream_section_without_url_uses_default():
    config = Config.from_toml("[upstream]\ntimeout_secs = 10\n")
    assert str(config.upstream.url) == "https://rubygems.org/"
    assert config.upstream.timeout_secs == 10


# === EDGE CASES ===


def test_config_copy_is_equal():
    config = Config()
    cloned = copy.deepcopy(config)
    assert cloned == config
    assert cloned.server.port == config.server.port


def test_config_repr_names_class():
    assert repr(Config()).startswith("Config(")


def test_zero_workers():
    config = Config.from_toml("[server]\nworkers = 0\n")
    assert config.server.workers == 0


def test_large_timeout():
    config = Config.from_toml(
        '[upstream]\nurl = "https://example.com/"\ntimeout_secs = 3600\n'
    )
    assert config.upstream.timeout_secs == 3600


def test_large_pool_size():
    config = Config.from_toml(
        '[upstream]\nurl = "https://example.com/"\nconnection_pool_size = 10000\n'
    )
    assert config.upstream.connection_pool_size == 10000


@pytest.mark.parametrize("level", ["trace", "debug", "info", "warn", "error"])
def test_various_log_levels(level):
    config = Config.from_toml(f'[logging]\nlevel = "{level}"\n')
    assert config.logging.level == level


@pytest.mark.parametrize("flag, expected", [("true", True), ("false", False)])
def test_json_logging(flag, expected):
    config = Config.from_toml(f"[logging]\njson = {flag}\n")
    assert config.logging.json is expected


@pytest.mark.parametrize("host", ["192.168.1.100", "::1"])
def test_hosts(host):
    config = Config.from_toml(f'[server]\nhost = "{host}"\n')
    assert config.server.host == host


@pytest.mark.parametrize("port", [80, 65535])
def test_port_numbers(port):
    config = Config.from_toml(f"[server]\nport = {port}\n")
    assert config.server.port == port


def test_port_out_of_range():
    with pytest.raises(ConfigError):
        Config.from_toml("[server]\nport = 70000\n")


# === INTEGRATION ===


def test_full_workflow_load_validate(tmp_path):
    config_path = tmp_path / "vein.toml"
    config_path.write_text(
        """
        [server]
        host = "0.0.0.0"
        port = 8346
        workers = 4

        [upstream]
        url = "https://rubygems.org/"
        timeout_secs = 30

        [storage]
        path = "gems"

        [database]
        path = "vein.db"

        [logging]
        level = "info"
        json = false
        """
    )
    config = Config.load(config_path)
    config.validate()

    assert config.server.host == "0.0.0.0"
    assert config.server.port == 8346
    assert str(config.upstream.url) == "https://rubygems.org/"
    assert config.storage.path == tmp_path / "gems"
    assert config.database.path == tmp_path / "vein.db"