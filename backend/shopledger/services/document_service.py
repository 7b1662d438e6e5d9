# Overview: Invoice number allocation for purchases, sales, and opening balances.

from __future__ import annotations

import secrets
import string
import time

PREFIX_PURCHASE = "PO"
PREFIX_SALE = "INV"
PREFIX_OPENING_BALANCE = "OB"

_TOKEN_ALPHABET = string.ascii_uppercase + string.digits


def _random_token(length: int = 9) -> str:
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))


def next_invoice_number(prefix: str) -> str:
    """
    Allocate an invoice number: "<PREFIX>-<epoch millis>-<random token>".

    Uniqueness is backed by the invoice_number unique constraint; a collision
    fails the surrounding transaction instead of being silently retried.
    """
    if not prefix:
        raise ValueError("prefix is required")
    return f"{prefix}-{int(time.time() * 1000)}-{_random_token()}"
