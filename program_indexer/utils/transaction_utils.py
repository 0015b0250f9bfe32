from typing import Any, List, Optional

# Utility functions for webhook and RPC transaction JSON


def get_first_entry(body: Any) -> Optional[dict]:
    if not isinstance(body, list) or not body:
        return None
    entry = body[0]
    return entry if isinstance(entry, dict) else None


def get_transaction(entry: dict) -> dict:
    transaction = entry.get("transaction")
    return transaction if isinstance(transaction, dict) else {}


def get_message(transaction: dict) -> dict:
    message = transaction.get("message")
    return message if isinstance(message, dict) else {}


def get_signature(transaction: dict) -> Optional[str]:
    signatures = transaction.get("signatures")
    if not isinstance(signatures, list) or not signatures:
        return None
    signature = signatures[0]
    return signature if isinstance(signature, str) and signature else None


# jsonParsed encodings give `{"pubkey": ..., "signer": ..., ...}` instead of a string
def account_key_to_str(account_key: Any) -> Optional[str]:
    if isinstance(account_key, str):
        return account_key
    if isinstance(account_key, dict):
        pubkey = account_key.get("pubkey")
        return pubkey if isinstance(pubkey, str) else None
    return None


def get_account_keys(message: dict) -> Optional[List[str]]:
    account_keys = message.get("accountKeys")
    if not isinstance(account_keys, list):
        return None
    keys = [account_key_to_str(account_key) for account_key in account_keys]
    if any(key is None for key in keys):
        return None
    return keys


def get_log_messages(entry: dict) -> List[str]:
    meta = entry.get("meta")
    if not isinstance(meta, dict):
        return []
    log_messages = meta.get("logMessages")
    if not isinstance(log_messages, list):
        return []
    return [line for line in log_messages if isinstance(line, str)]


def get_fee_payer(message: dict) -> Optional[str]:
    account_keys = message.get("accountKeys")
    if not isinstance(account_keys, list) or not account_keys:
        return None
    return account_key_to_str(account_keys[0])
