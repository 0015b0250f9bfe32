import logging
import threading
from enum import Enum
from typing import Callable, Dict, Optional, Set

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    MetaData,
    Table,
    Text,
    func,
    select,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.schema import CreateTable, SetTableComment

from program_indexer.utils.exceptions import DbError
from program_indexer.utils.metrics import ENSURED_TABLES
from program_indexer.utils.models.table_identity import TableIdentity


class TableKind(Enum):
    TRANSACTIONS = "transactions"
    ACCOUNTS = "accounts"


def transactions_table(name: str, metadata: MetaData) -> Table:
    return Table(
        name,
        metadata,
        Column("signature", Text, primary_key=True),
        Column("feepayer", Text),
        Column("name", Text),
        Column("data", JSONB(none_as_null=True)),
        Column("accounts", ARRAY(Text)),
        Column("created_at", DateTime(timezone=True), server_default=func.now()),
    )


def accounts_table(name: str, metadata: MetaData) -> Table:
    return Table(
        name,
        metadata,
        Column("pubkey", Text, primary_key=True),
        Column("data", JSONB(none_as_null=True)),
        Column("type", Text),
        Column("space", BigInteger),
        Column("lamports", BigInteger),
    )


TABLE_BUILDERS: Dict[TableKind, Callable[[str, MetaData], Table]] = {
    TableKind.TRANSACTIONS: transactions_table,
    TableKind.ACCOUNTS: accounts_table,
}


def table_name(kind: TableKind, identity: TableIdentity) -> str:
    if kind == TableKind.TRANSACTIONS:
        return identity.transactions_table_name()
    return identity.accounts_table_name()


def transactions_table_description(
    identity: TableIdentity, program_name: Optional[str] = None
) -> str:
    if program_name:
        return "Table for storing transactions for program %s (%s)" % (
            program_name,
            identity.address,
        )
    return "Table for storing transactions for program %s" % identity.address


def accounts_table_description(identity: TableIdentity) -> str:
    return (
        "Stores parsed account data indexed by pubkey for program %s"
        % identity.address
    )


class ProgramTableRegistry:
    """Creates per-program tables on first use.

    `ensure_table` issues `CREATE TABLE IF NOT EXISTS` under a transaction-scoped
    advisory lock keyed on the table name, so concurrent callers in this or any
    other process never race each other into a duplicate-type error. Table names
    already ensured by this process are remembered and skip the DDL round trip.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.metadata = MetaData()
        self._lock = threading.Lock()
        self._ensured: Set[str] = set()

    def table_for(self, kind: TableKind, identity: TableIdentity) -> Table:
        name = table_name(kind, identity)
        with self._lock:
            table = self.metadata.tables.get(name)
            if table is None:
                table = TABLE_BUILDERS[kind](name, self.metadata)
            return table

    def is_ensured(self, kind: TableKind, identity: TableIdentity) -> bool:
        with self._lock:
            return table_name(kind, identity) in self._ensured

    def ensure_table(
        self,
        kind: TableKind,
        identity: TableIdentity,
        description: Optional[str] = None,
    ) -> Table:
        table = self.table_for(kind, identity)
        if self.is_ensured(kind, identity):
            return table

        try:
            with self.engine.begin() as connection:
                connection.execute(
                    select(func.pg_advisory_xact_lock(func.hashtext(table.name)))
                )
                connection.execute(CreateTable(table, if_not_exists=True))
        except SQLAlchemyError as e:
            raise DbError("Failed to create table %s: %s" % (table.name, e)) from e

        if description:
            self.comment_on_table(table, description)

        with self._lock:
            if table.name not in self._ensured:
                self._ensured.add(table.name)
                ENSURED_TABLES.labels(table_kind=kind.value).inc()

        logging.info(
            "[Indexer] Ensured program table",
            extra={"table_name": table.name, "table_kind": kind.value},
        )
        return table

    def comment_on_table(self, table: Table, description: str) -> None:
        # Runs in its own transaction so a failure leaves the table usable.
        table.comment = description
        try:
            with self.engine.begin() as connection:
                connection.execute(SetTableComment(table))
        except SQLAlchemyError as e:
            logging.warning(
                "[Indexer] Failed to attach table description. Skipping...",
                extra={"table_name": table.name, "error": str(e)},
            )
