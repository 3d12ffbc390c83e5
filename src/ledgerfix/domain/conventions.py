"""Transaction id conventions used by the posting screens."""

OPENING_BALANCE_PREFIX = "OB-"
PURCHASE_OPENING_PREFIX = "OB-PUR-"
PRODUCTION_PREFIX = "PROD-"
SALES_INVOICE_PREFIX = "INV-"
PURCHASE_INVOICE_PREFIX = "PI-"
ORIGINAL_OPENING_PREFIX = "OO-"
JOURNAL_VOUCHER_PREFIX = "JV-"
INVENTORY_ADJUSTMENT_PREFIX = "IA-"

# Postings that belong to a source document (purchase, invoice, opening, production).
SOURCE_DOCUMENT_PREFIXES = (
    PURCHASE_INVOICE_PREFIX,
    SALES_INVOICE_PREFIX,
    ORIGINAL_OPENING_PREFIX,
    PRODUCTION_PREFIX,
)

# Invoice numbers of direct raw-material sales.
DIRECT_SALE_PREFIXES = ("DS-", "DSINV-")

# Voucher numbering starts after this value.
JOURNAL_VOUCHER_BASE = 1000


def opening_balance_id(partner_id: str) -> str:
    """Return the opening balance transaction id for a partner."""
    return f"{OPENING_BALANCE_PREFIX}{partner_id}"


def purchase_opening_id(purchase_id: str) -> str:
    """Return the retrofitted inventory transaction id for a purchase."""
    return f"{PURCHASE_OPENING_PREFIX}{purchase_id}"


def purchase_invoice_id(batch_number: str, purchase_id: str) -> str:
    """Return the transaction id a purchase posts under.

    Purchases without a batch number post under their upper-cased id.
    """
    return f"{PURCHASE_INVOICE_PREFIX}{batch_number or purchase_id.upper()}"


def original_opening_id(opening_id: str) -> str:
    return f"{ORIGINAL_OPENING_PREFIX}{opening_id}"


def production_id(production_id: str) -> str:
    """Return the transaction id a production posts under."""
    return f"{PRODUCTION_PREFIX}{production_id}"


def sales_invoice_id(invoice_no: str) -> str:
    """Return the transaction id a sales invoice posts under."""
    return f"{SALES_INVOICE_PREFIX}{invoice_no}"


def journal_voucher_id(number: int) -> str:
    return f"{JOURNAL_VOUCHER_PREFIX}{number}"


def inventory_adjustment_id(number: int) -> str:
    return f"{INVENTORY_ADJUSTMENT_PREFIX}{number}"


def voucher_number(transaction_id: str, prefix: str) -> int | None:
    """Return the numeric part of a ``<prefix><n>`` id, or None if it has none."""
    if not transaction_id.startswith(prefix):
        return None
    try:
        return int(transaction_id[len(prefix):])
    except ValueError:
        return None


def next_voucher_number(transaction_ids, prefix: str) -> int:
    """One past the highest ``<prefix><n>`` number in use, never below the base + 1."""
    highest = JOURNAL_VOUCHER_BASE
    for transaction_id in transaction_ids:
        number = voucher_number(transaction_id, prefix)
        if number is not None and number > highest:
            highest = number
    return highest + 1
