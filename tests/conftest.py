"""
Shared fakes for the processor tests: an RPC client returning canned results,
an in-memory keyed store standing in for the per-program tables, and a
SQLAlchemy-shaped engine that records executed statements.
"""

import threading
from contextlib import contextmanager

import pytest

from program_indexer.utils.exceptions import DbError

SIGNATURE = (
    "5h6xBEauJ3PK6SWCZ1PGjBvj8vDdWG3KpwATGy1ARAXFSDwt8GFXM7W5Ncn16wmqokgpiKRLuS83KUxyZyv2sUYv"
)
FEE_PAYER = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
MEMO_PROGRAM = "MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr"
TOKEN_ACCOUNT = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
DELEGATION_PROGRAM = "DELeGGvXpWV2fqJUhqcF5ZSYMS4JTLjteaAMARRSaeSh"

ACCOUNT_KEYS = [FEE_PAYER, TOKEN_ACCOUNT, TOKEN_PROGRAM, MEMO_PROGRAM]


def make_webhook_body(account_keys=None, log_messages=None, signature=SIGNATURE):
    entry = {
        "transaction": {
            "signatures": [signature],
            "message": {
                "accountKeys": list(ACCOUNT_KEYS if account_keys is None else account_keys)
            },
        },
        "meta": {"logMessages": list(log_messages or [])},
    }
    return [entry]


def make_transaction_result(instructions=None, fee_payer=FEE_PAYER):
    if instructions is None:
        instructions = [
            {
                "programId": TOKEN_PROGRAM,
                "programName": "spl-token",
                "name": "transfer",
                "parsedData": {"amount": "1000", "nested": {"decimals": 6}},
                "accounts": [1, 0],
            },
            {
                "programId": MEMO_PROGRAM,
                "programName": "spl-memo",
                "name": "memo",
                "accounts": [0],
            },
        ]
    return {
        "transaction": {
            "message": {
                "accountKeys": [fee_payer] + ACCOUNT_KEYS[1:],
                "instructions": instructions,
            }
        }
    }


def make_accounts_result(accounts=None):
    if accounts is None:
        accounts = [
            {
                "key": TOKEN_ACCOUNT,
                "owner": TOKEN_PROGRAM,
                "parsed": True,
                "name": "account",
                "space": 165,
                "lamports": 2039280,
                "data": {"mint": "So11111111111111111111111111111111111111112"},
            },
            {
                "key": FEE_PAYER,
                "owner": "11111111111111111111111111111111",
                "parsed": False,
                "name": None,
                "space": 0,
                "lamports": 5000000,
                "data": None,
            },
            None,
        ]
    return {"context": {"slot": 1}, "value": accounts}


class FakeRpcClient:
    def __init__(
        self,
        transaction_result=None,
        accounts_result=None,
        transaction_error=None,
        accounts_error=None,
    ):
        self.transaction_result = (
            make_transaction_result() if transaction_result is None else transaction_result
        )
        self.accounts_result = (
            make_accounts_result() if accounts_result is None else accounts_result
        )
        self.transaction_error = transaction_error
        self.accounts_error = accounts_error
        self.calls = []

    def get_parsed_transaction(self, signature):
        self.calls.append(("getParsedTransaction", signature))
        if self.transaction_error is not None:
            raise self.transaction_error
        return self.transaction_result

    def get_parsed_accounts_data(self, pubkeys):
        self.calls.append(("getParsedAccountsData", list(pubkeys)))
        if self.accounts_error is not None:
            raise self.accounts_error
        return self.accounts_result


class InMemoryWriter:
    """Keyed last-write-wins store with the same table naming as Postgres."""

    def __init__(self, failing_tables=()):
        self.failing_tables = set(failing_tables)
        self.tables = {}
        self.attempts = []
        self._lock = threading.Lock()

    def _upsert(self, table_name, key, values):
        with self._lock:
            self.attempts.append(table_name)
        if table_name in self.failing_tables:
            raise DbError("Failed to upsert into %s: boom" % table_name)
        with self._lock:
            self.tables.setdefault(table_name, {})[key] = values

    def upsert_transaction(self, row):
        self._upsert(
            row.identity.transactions_table_name(),
            row.signature,
            {
                "feepayer": row.fee_payer,
                "name": row.name,
                "data": row.data,
                "accounts": list(row.accounts),
            },
        )

    def upsert_account(self, row):
        self._upsert(
            row.identity.accounts_table_name(),
            row.pubkey,
            {
                "data": row.data,
                "type": row.type,
                "space": row.space,
                "lamports": row.lamports,
            },
        )


class FakeConnection:
    def __init__(self, engine):
        self.engine = engine
        self.executed = []

    def execute(self, statement):
        with self.engine.lock:
            self.engine.executed.append(statement)
            self.executed.append(statement)
        if self.engine.fail_on is not None:
            error = self.engine.fail_on(statement)
            if error is not None:
                raise error


class FakeEngine:
    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.executed = []
        # Statements grouped by the begin() block that ran them
        self.transactions = []
        self.lock = threading.Lock()

    @contextmanager
    def begin(self):
        connection = FakeConnection(self)
        with self.lock:
            self.transactions.append(connection.executed)
        yield connection


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def in_memory_writer():
    return InMemoryWriter()
