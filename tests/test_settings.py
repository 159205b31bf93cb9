import pytest

from cmm.errors import ConfigError
from cmm.settings import DEFAULT_HEALTHCHECK_FILE, DatabaseTarget, load_settings


def test_defaults_match_compose_conventions():
    s = load_settings({"HOSTNAME": "abc123"})

    assert s.citus_host == "master"
    assert s.postgres_user == "postgres"
    assert s.postgres_password is None
    assert s.postgres_db == "postgres"
    assert s.node_port == 5432
    assert s.hostname == "abc123"
    assert s.healthcheck_file == DEFAULT_HEALTHCHECK_FILE
    assert s.retry_interval_s == 1.0


def test_database_defaults_to_user_name():
    s = load_settings({"HOSTNAME": "abc123", "POSTGRES_USER": "citus", "POSTGRES_PASSWORD": "secret"})

    target = s.database_target()
    assert target == DatabaseTarget(host="master", user="citus", dbname="citus", password="secret")


def test_missing_hostname_is_fatal():
    with pytest.raises(ConfigError):
        load_settings({"CITUS_HOST": "coordinator"})


@pytest.mark.parametrize("name,value", [("CMM_NODE_PORT", "abc"), ("CMM_NODE_PORT", "70000"), ("CMM_RETRY_INTERVAL_S", "-1")])
def test_invalid_knobs_are_rejected(name, value):
    with pytest.raises(ConfigError):
        load_settings({"HOSTNAME": "abc123", name: value})


def test_log_flags():
    s = load_settings({"HOSTNAME": "abc123", "CMM_LOG_JSON": "no", "CMM_LOG_LEVEL": "debug"})
    assert s.log_json is False
    assert s.log_level == "DEBUG"


def test_password_is_kept_out_of_repr():
    s = load_settings({"HOSTNAME": "abc123", "POSTGRES_PASSWORD": "hunter2"})
    assert "hunter2" not in repr(s)
    assert "hunter2" not in repr(s.database_target())


def test_conninfo_omits_empty_password():
    info = DatabaseTarget(host="master", user="postgres", dbname="postgres").conninfo()
    assert "host=master" in info
    assert "dbname=postgres" in info
    assert "password" not in info

    info = DatabaseTarget(host="master", user="postgres", dbname="postgres", password="a b").conninfo()
    assert "password='a b'" in info
