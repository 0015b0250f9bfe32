from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from program_indexer.utils.config import ServerConfig


# One engine per process; its pool is shared by every writer thread and each
# write checks a connection out only for the duration of its transaction.
def create_db_engine(server_config: ServerConfig) -> Engine:
    return create_engine(
        server_config.postgres_connection_string,
        pool_size=server_config.postgres_pool_size,
        pool_pre_ping=True,
    )
