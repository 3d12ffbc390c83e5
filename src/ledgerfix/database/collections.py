"""Collection names used in the document store."""

LEDGER = "ledger"
ACCOUNTS = "accounts"
PARTNERS = "partners"
ITEMS = "items"
PURCHASES = "purchases"
BUNDLE_PURCHASES = "bundlePurchases"
PRODUCTIONS = "productions"
ORIGINAL_OPENINGS = "originalOpenings"
SALES_INVOICES = "salesInvoices"
ARCHIVE = "archive"

DIVISIONS = "divisions"
SUB_DIVISIONS = "subDivisions"
CATEGORIES = "categories"
SECTIONS = "sections"
ORIGINAL_TYPES = "originalTypes"
ORIGINAL_PRODUCTS = "originalProducts"

# Cleared by a transactional reset.
TRANSACTION_COLLECTIONS = (
    LEDGER,
    SALES_INVOICES,
    PURCHASES,
    PRODUCTIONS,
    ORIGINAL_OPENINGS,
    BUNDLE_PURCHASES,
    "logisticsEntries",
    "ongoingOrders",
    ARCHIVE,
)

# Additionally cleared by a complete reset.
SETUP_COLLECTIONS = (
    ITEMS,
    PARTNERS,
    ACCOUNTS,
    DIVISIONS,
    SUB_DIVISIONS,
    "warehouses",
    ORIGINAL_TYPES,
    ORIGINAL_PRODUCTS,
    CATEGORIES,
    SECTIONS,
)
