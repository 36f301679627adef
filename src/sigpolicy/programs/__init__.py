"""
Reference policy programs.

Native programs implement the Program interface in Python; bundled guests
are WebAssembly modules run through the Runtime.

Native programs:
    - LengthCheckProgram: minimum message length
    - TransactionAclProgram: recipient ACL from JSON config
    - PrivateTransactionAclProgram: allow list of hashed addresses

Bundled guests (see list_guests()):
    - length_check, length_check_with_aux, infinite_loop,
      xor_fold_hash, oracle_block_number, random_dependent
"""

from sigpolicy.programs.base import Program
from sigpolicy.programs.loader import guest_source, list_guests, load_guest
from sigpolicy.programs.transaction_acl import (
    LengthCheckProgram,
    PrivateTransactionAclProgram,
    TransactionAclProgram,
    hash_address,
)

__all__ = [
    "LengthCheckProgram",
    "PrivateTransactionAclProgram",
    "Program",
    "TransactionAclProgram",
    "guest_source",
    "hash_address",
    "list_guests",
    "load_guest",
]
