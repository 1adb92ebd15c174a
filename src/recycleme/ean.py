"""EAN/UPC barcode validation."""

#: EAN-8, UPC-A, EAN-13 and GTIN-14.
VALID_LENGTHS = (8, 12, 13, 14)


def is_valid_ean(code: str) -> bool:
    """Return True if *code* is a numeric barcode with a matching check digit.

    The check digit is ``(10 - sum % 10) % 10`` where the sum weights the
    body digits 3, 1, 3, ... starting from the rightmost one.

        >>> is_valid_ean("4006381333931")
        True
        >>> is_valid_ean("4006381333932")
        False
    """
    if not code or not code.isascii() or not code.isdigit():
        return False
    if len(code) not in VALID_LENGTHS:
        return False

    *body, check = (int(c) for c in code)
    total = sum(digit * (3 if i % 2 == 0 else 1) for i, digit in enumerate(reversed(body)))
    return (10 - total % 10) % 10 == check
