import logging
import threading
from time import perf_counter
from typing import Any, Callable, Dict, Hashable, List, Optional

from program_indexer.processors.solana_webhook import decoder
from program_indexer.processors.solana_webhook.writer import ProgramTableWriter
from program_indexer.utils.config import DEFAULT_DELEGATION_PROGRAM_ID
from program_indexer.utils.exceptions import RpcError
from program_indexer.utils.metrics import FAILED_WRITES_COUNTER, WRITTEN_ROWS_COUNTER
from program_indexer.utils.models.program_tables import TableKind
from program_indexer.utils.processor_name import ProcessorName
from program_indexer.utils.rpc_client import RpcClient
from program_indexer.utils.transactions_processor import (
    ProcessingResult,
    TransactionsProcessor,
)

PROCESSOR_SERVICE_TYPE = "processor"


def last_row_per_key(rows: List[Any], key: Callable[[Any], Hashable]) -> List[Any]:
    # Rows sharing a key would race each other; only the last one is written
    collapsed: Dict[Hashable, Any] = {}
    for row in rows:
        collapsed[key(row)] = row
    return list(collapsed.values())


class WriterThread(threading.Thread):
    """Upserts one row. The outcome is read after `join()`."""

    exception: Optional[Exception]

    def __init__(
        self,
        write: Callable[[Any], None],
        row: Any,
        table_kind: TableKind,
        processor_name: str,
    ):
        threading.Thread.__init__(self)
        self.write = write
        self.row = row
        self.table_kind = table_kind
        self.processor_name = processor_name
        self.exception = None

    def run(self):
        try:
            self.write(self.row)
            WRITTEN_ROWS_COUNTER.labels(
                processor_name=self.processor_name,
                table_kind=self.table_kind.value,
            ).inc()
        except Exception as e:
            logging.exception(
                "[Indexer] Error writing row",
                extra={
                    "processor_name": self.processor_name,
                    "table_kind": self.table_kind.value,
                    "table_identity": str(self.row.identity),
                    "error": str(e),
                    "service_type": PROCESSOR_SERVICE_TYPE,
                },
            )
            FAILED_WRITES_COUNTER.labels(
                processor_name=self.processor_name,
                table_kind=self.table_kind.value,
            ).inc()
            self.exception = e


class SolanaWebhookProcessor(TransactionsProcessor):
    # Steps for one event:
    # 1. Validate the body. Nothing else happens for a bad body.
    # 2. Fetch the parsed transaction. An RPC failure aborts before any write.
    # 3. Start one writer per decoded instruction (plus the delegation row),
    #    keeping the last instruction when a program appears more than once.
    # 4. Fetch the parsed accounts while those writes run.
    # 5. Start one writer per decoded account.
    # 6. Join every writer, then raise the first failure in dispatch order.
    # Rows committed before a failure stay committed; redelivery is safe because
    # every write is keyed.
    def __init__(
        self,
        rpc_client: RpcClient,
        writer: ProgramTableWriter,
        delegation_program_id: str = DEFAULT_DELEGATION_PROGRAM_ID,
        index_delegations: bool = True,
    ):
        self.rpc_client = rpc_client
        self.writer = writer
        self.delegation_program_id = delegation_program_id
        self.index_delegations = index_delegations

    def name(self) -> str:
        return ProcessorName.SOLANA_WEBHOOK_PROCESSOR.value

    def process_event(self, body: Any) -> ProcessingResult:
        start_time = perf_counter()
        event = decoder.parse_webhook_event(body)

        transaction = decoder.parse_enriched_transaction(
            self.rpc_client.get_parsed_transaction(event.signature)
        )
        transaction_rows = decoder.decode_transaction_rows(event, transaction)
        if self.index_delegations:
            delegation_row = decoder.decode_delegation_row(
                event, transaction.fee_payer, self.delegation_program_id
            )
            if delegation_row is not None:
                transaction_rows.append(delegation_row)
        transaction_rows = last_row_per_key(
            transaction_rows, lambda row: (row.identity.value, row.signature)
        )

        db_start_time = perf_counter()
        writer_threads = self.start_writers(
            TableKind.TRANSACTIONS, self.writer.upsert_transaction, transaction_rows
        )

        try:
            accounts_result = self.rpc_client.get_parsed_accounts_data(
                list(event.account_keys)
            )
        except RpcError:
            self.join_writers(writer_threads)
            raise

        account_rows = last_row_per_key(
            decoder.decode_account_rows(
                decoder.parse_enriched_accounts(accounts_result)
            ),
            lambda row: (row.identity.value, row.pubkey),
        )
        writer_threads += self.start_writers(
            TableKind.ACCOUNTS, self.writer.upsert_account, account_rows
        )

        self.join_writers(writer_threads)
        db_insertion_duration_in_secs = perf_counter() - db_start_time

        for thread in writer_threads:
            if thread.exception is not None:
                raise thread.exception

        result = ProcessingResult(
            signature=event.signature,
            num_of_transaction_rows=len(transaction_rows),
            num_of_account_rows=len(account_rows),
            processing_duration_in_secs=perf_counter()
            - start_time
            - db_insertion_duration_in_secs,
            db_insertion_duration_in_secs=db_insertion_duration_in_secs,
        )
        logging.info(
            "[Indexer] Processor finished processing one event",
            extra={
                "processor_name": self.name(),
                "signature": result.signature,
                "num_of_transaction_rows": result.num_of_transaction_rows,
                "num_of_account_rows": result.num_of_account_rows,
                "processing_duration_in_secs": format(
                    result.processing_duration_in_secs, ".8f"
                ),
                "db_insertion_duration_in_secs": format(
                    result.db_insertion_duration_in_secs, ".8f"
                ),
                "service_type": PROCESSOR_SERVICE_TYPE,
            },
        )
        return result

    def start_writers(
        self,
        table_kind: TableKind,
        write: Callable[[Any], None],
        rows: List[Any],
    ) -> List[WriterThread]:
        threads = []
        for row in rows:
            thread = WriterThread(write, row, table_kind, self.name())
            threads.append(thread)
            thread.start()
        return threads

    @staticmethod
    def join_writers(threads: List[WriterThread]) -> None:
        for thread in threads:
            thread.join()
