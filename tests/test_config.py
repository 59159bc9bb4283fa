from pathlib import Path

import pytest

from empty_port.config import CONFIG_FILENAME, DEFAULTS, get_config, load_config_file, load_env


def test_load_config_file_missing(tmp_path: Path) -> None:
    assert load_config_file(tmp_path / "missing.yaml") == {}


def test_load_config_file_empty(tmp_path: Path) -> None:
    p = tmp_path / CONFIG_FILENAME
    p.write_text("")
    assert load_config_file(p) == {}


def test_load_config_file_not_a_mapping(tmp_path: Path) -> None:
    p = tmp_path / CONFIG_FILENAME
    p.write_text("- a\n- b\n")
    with pytest.raises(ValueError, match="YAML object"):
        load_config_file(p)


def test_load_config_file_keeps_known_keys(tmp_path: Path) -> None:
    p = tmp_path / CONFIG_FILENAME
    p.write_text('host: "::1"\nprotocol: udp\nmax_wait: 30\nunrelated: x\n')
    assert load_config_file(p) == {"host": "::1", "protocol": "udp", "max_wait": 30}


def test_load_env_skips_empty_values() -> None:
    env = {"EMPTY_PORT_HOST": "", "EMPTY_PORT_MAX_WAIT": "5", "OTHER": "x"}
    assert load_env(env) == {"max_wait": "5"}


def test_get_config_defaults(tmp_path: Path) -> None:
    assert get_config(tmp_path / "none.yaml", env={}) == DEFAULTS


def test_get_config_env_overrides_file(tmp_path: Path) -> None:
    p = tmp_path / CONFIG_FILENAME
    p.write_text("protocol: udp\nmax_wait: 30\ntimeout: 0.5\n")
    config = get_config(p, env={"EMPTY_PORT_MAX_WAIT": "-1", "EMPTY_PORT_PROTOCOL": "TCP"})
    assert config["max_wait"] == -1.0
    assert config["protocol"] == "tcp"
    assert config["timeout"] == 0.5
    assert config["host"] == "127.0.0.1"


def test_get_config_reads_cwd_file_by_default(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / CONFIG_FILENAME).write_text("host: localhost\n")
    monkeypatch.chdir(tmp_path)
    assert get_config(env={})["host"] == "localhost"


def test_get_config_bad_number(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="max_wait"):
        get_config(tmp_path / "none.yaml", env={"EMPTY_PORT_MAX_WAIT": "soon"})


def test_get_config_bad_protocol(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="protocol"):
        get_config(tmp_path / "none.yaml", env={"EMPTY_PORT_PROTOCOL": "sctp"})


def test_load_config_file_invalid_yaml(tmp_path: Path) -> None:
    p = tmp_path / CONFIG_FILENAME
    p.write_text("host: [unclosed\n")
    with pytest.raises(ValueError, match="invalid YAML"):
        load_config_file(p)
