from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from program_indexer.utils.models.table_identity import TableIdentity


@dataclass(frozen=True)
class WebhookEvent:
    signature: str
    account_keys: Tuple[str, ...]
    log_messages: Tuple[str, ...] = ()


@dataclass
class Instruction:
    program_id: Optional[str]
    program_name: Optional[str]
    name: Optional[str]
    # Arbitrary JSON document, stored verbatim
    parsed_data: Any
    account_indices: List[int] = field(default_factory=list)


@dataclass
class EnrichedTransaction:
    fee_payer: Optional[str]
    instructions: List[Instruction] = field(default_factory=list)


@dataclass
class EnrichedAccount:
    key: str
    owner: Optional[str]
    parsed: bool
    name: Optional[str]
    space: Optional[int]
    lamports: Optional[int]
    data: Any = None


@dataclass
class TransactionRow:
    identity: TableIdentity
    signature: str
    fee_payer: Optional[str]
    name: Optional[str]
    data: Any
    accounts: List[str]
    # Only used for the table description
    program_name: Optional[str] = None


@dataclass
class AccountRow:
    identity: TableIdentity
    pubkey: str
    data: Any
    type: Optional[str]
    space: Optional[int]
    lamports: Optional[int]
