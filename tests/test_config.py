import pytest
import yaml

from program_indexer.utils.config import DEFAULT_DELEGATION_PROGRAM_ID, Config

CONFIG = {
    "http_port": 9000,
    "server_config": {
        "postgres_connection_string": "postgresql://postgres@localhost:5432/indexer",
        "rpc_url": "https://api.mainnet-beta.solana.com",
        "rpcx_url": "https://rpc-proxy.example.com",
        "auth_header": "from-file",
    },
}


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(CONFIG))
    return str(path)


def test_from_yaml_file(config_path):
    config = Config.from_yaml_file(config_path)

    assert config.http_port == 9000
    assert config.server_config.auth_header == "from-file"
    assert config.server_config.rpc_timeout_in_secs is None
    assert config.server_config.delegation_program_id == DEFAULT_DELEGATION_PROGRAM_ID
    assert config.server_config.index_delegations is True


def test_environment_takes_precedence_over_file(config_path, monkeypatch):
    monkeypatch.setenv("HTTP_PORT", "9100")
    monkeypatch.setenv("SERVER_CONFIG__AUTH_HEADER", "from-env")

    config = Config.from_yaml_file(config_path)

    assert config.http_port == 9100
    assert config.server_config.auth_header == "from-env"
    assert config.server_config.rpcx_url == "https://rpc-proxy.example.com"


def test_missing_required_field(tmp_path):
    path = tmp_path / "config.yaml"
    broken = {"server_config": dict(CONFIG["server_config"])}
    del broken["server_config"]["rpcx_url"]
    path.write_text(yaml.safe_dump(broken))

    with pytest.raises(ValueError):
        Config.from_yaml_file(str(path))
