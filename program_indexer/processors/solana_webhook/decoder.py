import logging
import re
from typing import Any, List, Optional

from program_indexer.processors.solana_webhook.models import (
    AccountRow,
    EnrichedAccount,
    EnrichedTransaction,
    Instruction,
    TransactionRow,
    WebhookEvent,
)
from program_indexer.utils import transaction_utils
from program_indexer.utils.exceptions import ClientInputError, InvalidTableIdentity
from program_indexer.utils.models.table_identity import TableIdentity, derive_identity

DELEGATE_INSTRUCTION_MARKER = "Processing instruction: Delegate"
DELEGATE_INSTRUCTION_NAME = "Delegate"
TOP_LEVEL_INVOKE_REGEX = re.compile(r"^Program (\S+) invoke \[1\]$")

INVALID_INPUT_MESSAGE = "Invalid input"


def parse_webhook_event(body: Any) -> WebhookEvent:
    entry = transaction_utils.get_first_entry(body)
    if entry is None:
        raise ClientInputError(INVALID_INPUT_MESSAGE)

    transaction = transaction_utils.get_transaction(entry)
    signature = transaction_utils.get_signature(transaction)
    account_keys = transaction_utils.get_account_keys(
        transaction_utils.get_message(transaction)
    )
    if signature is None or account_keys is None:
        raise ClientInputError(INVALID_INPUT_MESSAGE)

    return WebhookEvent(
        signature=signature,
        account_keys=tuple(account_keys),
        log_messages=tuple(transaction_utils.get_log_messages(entry)),
    )


def parse_enriched_transaction(result: Any) -> EnrichedTransaction:
    transaction = (
        transaction_utils.get_transaction(result) if isinstance(result, dict) else {}
    )
    message = transaction_utils.get_message(transaction)

    raw_instructions = message.get("instructions")
    if not isinstance(raw_instructions, list):
        raw_instructions = []

    instructions = []
    for raw_instruction in raw_instructions:
        if not isinstance(raw_instruction, dict):
            continue
        instructions.append(
            Instruction(
                program_id=raw_instruction.get("programId"),
                program_name=raw_instruction.get("programName"),
                name=raw_instruction.get("name"),
                parsed_data=raw_instruction.get("parsedData"),
                account_indices=raw_instruction.get("accounts") or [],
            )
        )

    return EnrichedTransaction(
        fee_payer=transaction_utils.get_fee_payer(message),
        instructions=instructions,
    )


def parse_enriched_accounts(result: Any) -> List[EnrichedAccount]:
    value = result.get("value") if isinstance(result, dict) else None
    if not isinstance(value, list):
        value = []

    accounts = []
    for raw_account in value:
        # Accounts that do not exist come back as null
        if not isinstance(raw_account, dict):
            continue
        accounts.append(
            EnrichedAccount(
                key=raw_account.get("key"),
                owner=raw_account.get("owner"),
                parsed=raw_account.get("parsed") is True,
                name=raw_account.get("name"),
                space=raw_account.get("space"),
                lamports=raw_account.get("lamports"),
                data=raw_account.get("data"),
            )
        )
    return accounts


def identity_or_none(address: Optional[str], **log_fields) -> Optional[TableIdentity]:
    if not isinstance(address, str):
        return None
    try:
        return derive_identity(address)
    except InvalidTableIdentity:
        logging.warning(
            "[Indexer] Address has no usable table identity. Skipping...",
            extra={"address": address, **log_fields},
        )
        return None


def resolve_account_indices(
    account_indices: Any, account_keys: tuple
) -> Optional[List[str]]:
    if not isinstance(account_indices, list):
        return None
    accounts = []
    for index in account_indices:
        if (
            not isinstance(index, int)
            or isinstance(index, bool)
            or not 0 <= index < len(account_keys)
        ):
            return None
        accounts.append(account_keys[index])
    return accounts


def decode_transaction_rows(
    event: WebhookEvent, transaction: EnrichedTransaction
) -> List[TransactionRow]:
    rows = []
    for instruction_index, instruction in enumerate(transaction.instructions):
        # Only instructions the RPC could decode are persisted
        if not instruction.program_id or instruction.parsed_data is None:
            continue

        identity = identity_or_none(
            instruction.program_id,
            signature=event.signature,
            instruction_index=instruction_index,
        )
        if identity is None:
            continue

        accounts = resolve_account_indices(
            instruction.account_indices, event.account_keys
        )
        if accounts is None:
            logging.warning(
                "[Indexer] Instruction references an unknown account index. Skipping...",
                extra={
                    "signature": event.signature,
                    "instruction_index": instruction_index,
                    "account_indices": instruction.account_indices,
                    "num_of_account_keys": len(event.account_keys),
                },
            )
            continue

        rows.append(
            TransactionRow(
                identity=identity,
                signature=event.signature,
                fee_payer=transaction.fee_payer,
                name=instruction.name,
                data=instruction.parsed_data,
                accounts=accounts,
                program_name=instruction.program_name,
            )
        )
    return rows


def decode_account_rows(accounts: List[EnrichedAccount]) -> List[AccountRow]:
    rows = []
    for account in accounts:
        if not account.parsed or not account.key:
            continue

        identity = identity_or_none(account.owner, pubkey=account.key)
        if identity is None:
            continue

        rows.append(
            AccountRow(
                identity=identity,
                pubkey=account.key,
                data=account.data,
                type=account.name,
                space=account.space,
                lamports=account.lamports,
            )
        )
    return rows


def find_delegated_program(log_messages: tuple) -> Optional[str]:
    """Returns the top-level program that invoked the delegation, if any.

    Walks back from the first `Delegate` marker to the closest earlier
    `Program <address> invoke [1]` line.
    """
    for marker_index, line in enumerate(log_messages):
        if DELEGATE_INSTRUCTION_MARKER in line:
            break
    else:
        return None

    for line in reversed(log_messages[:marker_index]):
        match = TOP_LEVEL_INVOKE_REGEX.match(line)
        if match:
            return match.group(1)
    return None


def is_delegation_event(event: WebhookEvent, delegation_program_id: str) -> bool:
    return delegation_program_id in event.account_keys and any(
        DELEGATE_INSTRUCTION_MARKER in line for line in event.log_messages
    )


def decode_delegation_row(
    event: WebhookEvent, fee_payer: Optional[str], delegation_program_id: str
) -> Optional[TransactionRow]:
    if not is_delegation_event(event, delegation_program_id):
        return None

    identity = identity_or_none(delegation_program_id, signature=event.signature)
    if identity is None:
        return None

    # A missing invoke line still produces a row, with a null program
    return TransactionRow(
        identity=identity,
        signature=event.signature,
        fee_payer=fee_payer,
        name=DELEGATE_INSTRUCTION_NAME,
        data={"program": find_delegated_program(event.log_messages)},
        accounts=list(event.account_keys),
    )
