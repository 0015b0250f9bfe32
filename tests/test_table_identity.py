import re

import pytest

from program_indexer.utils.exceptions import InvalidTableIdentity
from program_indexer.utils.models.table_identity import derive_identity, normalize_address

from conftest import DELEGATION_PROGRAM, TOKEN_PROGRAM

ADDRESSES = [
    TOKEN_PROGRAM,
    DELEGATION_PROGRAM,
    "11111111111111111111111111111111",
    "Some-Program.With Spaces/and:punctuation",
    "a",
    "_x_",
]


@pytest.mark.parametrize("address", ADDRESSES)
def test_identity_is_deterministic_and_sql_safe(address):
    identity = derive_identity(address)

    assert identity == derive_identity(address)
    assert re.fullmatch(r"[a-z0-9_]+", identity.value)
    assert identity.value == identity.value.lower()
    assert len(identity.value) == len(address)


def test_identity_keeps_the_original_address():
    identity = derive_identity(TOKEN_PROGRAM)

    assert identity.value == "tokenkegqfezyinwajbnbgkpfxcwubvf9ss623vq5da"
    assert identity.address == TOKEN_PROGRAM
    assert str(identity) == identity.value


def test_disallowed_characters_become_underscores():
    assert normalize_address("Ab-C.d é") == "ab_c_d__"


def test_table_names_use_fixed_prefixes():
    identity = derive_identity(TOKEN_PROGRAM)

    assert identity.transactions_table_name() == "txs_program_" + identity.value
    assert identity.accounts_table_name() == "program_" + identity.value


@pytest.mark.parametrize("address", ["", "---", "...", "___", None])
def test_identity_without_alphanumerics_is_refused(address):
    with pytest.raises(InvalidTableIdentity):
        derive_identity(address)
