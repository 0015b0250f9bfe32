import re
from dataclasses import dataclass

from program_indexer.utils.exceptions import InvalidTableIdentity

TRANSACTIONS_TABLE_PREFIX = "txs_program_"
ACCOUNTS_TABLE_PREFIX = "program_"

_DISALLOWED_CHARS = re.compile(r"[^a-z0-9_]")
_ALPHANUMERIC = re.compile(r"[a-z0-9]")


def normalize_address(address: str) -> str:
    return _DISALLOWED_CHARS.sub("_", address.lower())


@dataclass(frozen=True)
class TableIdentity:
    """SQL-safe name fragment for one program's tables.

    Only `derive_identity` should build these; table names are never assembled
    from raw addresses anywhere else.
    """

    value: str
    address: str

    def transactions_table_name(self) -> str:
        return TRANSACTIONS_TABLE_PREFIX + self.value

    def accounts_table_name(self) -> str:
        return ACCOUNTS_TABLE_PREFIX + self.value

    def __str__(self) -> str:
        return self.value


def derive_identity(address: str) -> TableIdentity:
    value = normalize_address(address or "")
    # An identity made only of underscores would still be a legal name but
    # cannot be traced back to a program.
    if not _ALPHANUMERIC.search(value):
        raise InvalidTableIdentity(
            "Address %r does not yield a usable table identity" % address
        )
    return TableIdentity(value=value, address=address)
