import logging

from sqlalchemy import Table
from sqlalchemy.dialects.postgresql import Insert, insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from program_indexer.processors.solana_webhook.models import AccountRow, TransactionRow
from program_indexer.utils.exceptions import DbError
from program_indexer.utils.models.program_tables import (
    ProgramTableRegistry,
    TableKind,
    accounts_table_description,
    transactions_table_description,
)

# Every non-key column is overwritten on redelivery; created_at keeps its first value
TRANSACTION_UPDATE_COLUMNS = ("feepayer", "name", "data", "accounts")
ACCOUNT_UPDATE_COLUMNS = ("data", "type", "space", "lamports")


def build_transaction_upsert(table: Table, row: TransactionRow) -> Insert:
    insert_stmt = insert(table).values(
        signature=row.signature,
        feepayer=row.fee_payer,
        name=row.name,
        data=row.data,
        accounts=row.accounts,
    )
    return insert_stmt.on_conflict_do_update(
        index_elements=["signature"],
        set_={column: insert_stmt.excluded[column] for column in TRANSACTION_UPDATE_COLUMNS},
    )


def build_account_upsert(table: Table, row: AccountRow) -> Insert:
    insert_stmt = insert(table).values(
        pubkey=row.pubkey,
        data=row.data,
        type=row.type,
        space=row.space,
        lamports=row.lamports,
    )
    return insert_stmt.on_conflict_do_update(
        index_elements=["pubkey"],
        set_={column: insert_stmt.excluded[column] for column in ACCOUNT_UPDATE_COLUMNS},
    )


class ProgramTableWriter:
    """Keyed insert-or-update of single rows into per-program tables.

    Last write wins; nothing is read before writing. The target table is
    ensured before every upsert.
    """

    def __init__(self, engine: Engine, registry: ProgramTableRegistry):
        self.engine = engine
        self.registry = registry

    def upsert_transaction(self, row: TransactionRow) -> None:
        table = self.registry.ensure_table(
            TableKind.TRANSACTIONS,
            row.identity,
            transactions_table_description(row.identity, row.program_name),
        )
        self.execute(build_transaction_upsert(table, row), table)
        logging.debug(
            "[Indexer] Upserted transaction row",
            extra={"table_name": table.name, "signature": row.signature},
        )

    def upsert_account(self, row: AccountRow) -> None:
        table = self.registry.ensure_table(
            TableKind.ACCOUNTS,
            row.identity,
            accounts_table_description(row.identity),
        )
        self.execute(build_account_upsert(table, row), table)
        logging.debug(
            "[Indexer] Upserted account row",
            extra={"table_name": table.name, "pubkey": row.pubkey},
        )

    def execute(self, statement: Insert, table: Table) -> None:
        try:
            with self.engine.begin() as connection:
                connection.execute(statement)
        except SQLAlchemyError as e:
            raise DbError("Failed to upsert into %s: %s" % (table.name, e)) from e
