"""
Account Utilities

Seed parsing and account derivation for request signers.
Uses stdlib only - no external crypto libraries. The account is a stable
BLAKE2b-256 fingerprint of the normalized seed; it identifies the caller, it
does not sign anything.
"""

from __future__ import annotations

import hashlib
import re

ACCOUNT_PATTERN = re.compile(r"^0x[0-9a-f]{64}$")
HEX_SECRET_PATTERN = re.compile(r"^0x[0-9a-fA-F]{64}$")
DEV_URI_PATTERN = re.compile(r"^//[A-Za-z0-9_\-/]+$")
MNEMONIC_WORD_COUNTS = {12, 15, 18, 21, 24}
MNEMONIC_WORD_PATTERN = re.compile(r"^[a-z]+$")


def normalize_seed(seed: str) -> str:
    """
    Normalize and validate a seed.

    Accepted forms:
    - dev URI, e.g. '//Alice'
    - 32-byte hex secret, e.g. '0x' + 64 hex chars
    - mnemonic phrase of 12, 15, 18, 21 or 24 lowercase words

    Raises:
        ValueError: If the seed is empty or matches none of the forms
    """
    if not isinstance(seed, str):
        raise ValueError("seed must be a string")
    value = seed.strip()
    if not value:
        raise ValueError("seed is required")

    if DEV_URI_PATTERN.match(value):
        return value
    if HEX_SECRET_PATTERN.match(value):
        return value.lower()

    words = value.split()
    if len(words) in MNEMONIC_WORD_COUNTS and all(MNEMONIC_WORD_PATTERN.match(w) for w in words):
        return " ".join(words)

    raise ValueError("seed must be a dev URI, a 0x-prefixed 32-byte hex secret or a mnemonic phrase")


def account_from_seed(seed: str) -> str:
    """Derive the account id ('0x' + 64 hex chars) for a seed."""
    normalized = normalize_seed(seed)
    digest = hashlib.blake2b(normalized.encode("utf-8"), digest_size=32).hexdigest()
    return f"0x{digest}"


def is_valid_account(account: str) -> bool:
    return isinstance(account, str) and bool(ACCOUNT_PATTERN.match(account))


def normalize_account(account: str) -> str:
    """
    Lowercase and validate an account id.

    Raises:
        ValueError: If the account is not '0x' followed by 64 hex chars
    """
    if not isinstance(account, str):
        raise ValueError("account must be a string")
    value = account.strip().lower()
    if not is_valid_account(value):
        raise ValueError(f"Invalid account '{account}': expected 0x followed by 64 hex characters")
    return value
