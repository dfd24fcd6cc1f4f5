"""
Voucher code generation and status helpers
"""
import secrets
import string
from typing import Iterable, List, Optional

from storefront.domain.discount import VoucherCode

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8


def generate_voucher_code(prefix: Optional[str] = None) -> str:
    """
    Eight random upper-case base-36 characters, optionally PREFIX-XXXXXXXX

    >>> len(generate_voucher_code())
    8
    >>> generate_voucher_code("summer").startswith("SUMMER-")
    True
    """
    random_part = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
    if prefix:
        return f"{prefix.strip().upper()}-{random_part}"
    return random_part


def generate_multiple_voucher_codes(
    quantity: int,
    prefix: Optional[str] = None,
    existing: Iterable[str] = ()
) -> List[str]:
    """`quantity` distinct codes, none of which is in `existing`"""
    taken = {code.upper() for code in existing}
    codes: List[str] = []
    while len(codes) < quantity:
        code = generate_voucher_code(prefix)
        if code not in taken:
            taken.add(code)
            codes.append(code)
    return codes


def get_voucher_code_status(code: VoucherCode) -> str:
    """Stored status, except that an exhausted code reports as used"""
    if code.usage_limit and code.used_count >= code.usage_limit:
        return "used"
    return code.status


def can_delete_voucher_code(code: VoucherCode) -> bool:
    return code.used_count == 0
