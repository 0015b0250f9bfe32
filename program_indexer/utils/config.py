import yaml
from pydantic import BaseModel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)
from typing import Optional

DEFAULT_DELEGATION_PROGRAM_ID = "DELeGGvXpWV2fqJUhqcF5ZSYMS4JTLjteaAMARRSaeSh"


class ServerConfig(BaseModel):
    postgres_connection_string: str
    # Real upstream RPC endpoint, forwarded to the proxy in the `Rpc` header
    rpc_url: str
    # Proxy endpoint every RPC request is actually sent to
    rpcx_url: str
    # Expected value of the inbound `Authorization` header
    auth_header: str
    # Left to the transport when unset
    rpc_timeout_in_secs: Optional[float] = None
    delegation_program_id: str = DEFAULT_DELEGATION_PROGRAM_ID
    index_delegations: bool = True
    postgres_pool_size: int = 10


class Config(BaseSettings):
    http_port: int = 8080
    server_config: ServerConfig

    # SERVER_CONFIG__AUTH_HEADER and friends override nested values
    model_config = SettingsConfigDict(env_nested_delimiter="__")

    # change order of priority of settings sources such that environment variables take precedence over config file settings
    # inspired by https://docs.pydantic.dev/latest/concepts/pydantic_settings/#changing-priority
    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return env_settings, init_settings, file_secret_settings

    @classmethod
    def from_yaml_file(cls, path: str):
        with open(path, "r") as file:
            config = yaml.safe_load(file)

        return cls(**config)
