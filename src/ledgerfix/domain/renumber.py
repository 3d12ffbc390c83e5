"""Renumbering of setup entity ids with cascading reference rewrites.

For one entity kind, every document whose id does not follow the kind's
``PREFIX-NNNN`` format gets a new id. The whole old → new map is computed
before anything is written. Writes then happen in three phases: copy to the
new ids, rewrite every reference, delete the old documents. Old documents are
only deleted once the first two phases succeeded, and a rerun picks up copies
left by an interrupted run through their ``previousId`` field.
"""

import re
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Optional

import structlog

from ledgerfix.database import collections
from ledgerfix.database.base import Document, LedgerStore, WriteOperation
from ledgerfix.domain.batching import BatchWriter, ProgressCallback, single_operation_units
from ledgerfix.domain.errors import ValidationError
from ledgerfix.domain.issues import FixError, RenumberResult

logger = structlog.get_logger(__name__)

DEFAULT_START = 1001


@dataclass(frozen=True)
class RenumberKind:
    """An entity kind whose ids can be renumbered."""

    name: str
    collection: str
    prefix: str
    references: tuple[tuple[str, str], ...]

    @property
    def pattern(self) -> re.Pattern:
        return re.compile(rf"^{re.escape(self.prefix)}-(\d+)$")

    def format_id(self, number: int) -> str:
        return f"{self.prefix}-{number:04d}"


RENUMBER_KINDS: dict[str, RenumberKind] = {
    kind.name: kind
    for kind in (
        RenumberKind(
            "divisions",
            collections.DIVISIONS,
            "DIV",
            (
                (collections.SUB_DIVISIONS, "divisionId"),
                (collections.PARTNERS, "divisionId"),
                (collections.PURCHASES, "divisionId"),
                (collections.SALES_INVOICES, "divisionId"),
                (collections.BUNDLE_PURCHASES, "divisionId"),
            ),
        ),
        RenumberKind(
            "sub-divisions",
            collections.SUB_DIVISIONS,
            "SDIV",
            (
                (collections.PARTNERS, "subDivisionId"),
                (collections.PURCHASES, "subDivisionId"),
                (collections.SALES_INVOICES, "subDivisionId"),
                (collections.BUNDLE_PURCHASES, "subDivisionId"),
            ),
        ),
        RenumberKind("categories", collections.CATEGORIES, "CAT", ((collections.ITEMS, "category"),)),
        RenumberKind("sections", collections.SECTIONS, "SEC", ((collections.ITEMS, "section"),)),
        RenumberKind(
            "original-types",
            collections.ORIGINAL_TYPES,
            "ORT",
            (
                (collections.ORIGINAL_PRODUCTS, "originalTypeId"),
                (collections.PURCHASES, "originalTypeId"),
            ),
        ),
        RenumberKind(
            "original-products",
            collections.ORIGINAL_PRODUCTS,
            "ORP",
            ((collections.PURCHASES, "originalProductId"),),
        ),
    )
}


def get_kind(name: str) -> RenumberKind:
    """Look up a renumber kind by name (``sub_divisions`` and ``sub-divisions`` both work)."""
    key = name.strip().lower().replace("_", "-")
    if key not in RENUMBER_KINDS:
        raise ValidationError(
            f"Unknown entity kind '{name}'. Choose from: {', '.join(RENUMBER_KINDS)}"
        )
    return RENUMBER_KINDS[key]


def build_mapping(kind: RenumberKind, documents: list[Document], start: int = DEFAULT_START) -> dict[str, str]:
    """Compute the old → new id map for one kind.

    Documents already in the target format keep their ids. A document that
    an earlier run already copied (a matching document names it as
    ``previousId``) maps to that copy. The rest are numbered in display-name
    order, after the highest existing number or from ``start``.
    """
    pattern = kind.pattern
    matching = [doc for doc in documents if pattern.match(str(doc.get("id", "")))]
    numbers = [int(pattern.match(str(doc["id"])).group(1)) for doc in matching]
    next_number = max(numbers) + 1 if numbers else start

    copied = {str(doc["previousId"]): str(doc["id"]) for doc in matching if doc.get("previousId")}
    mapping: dict[str, str] = {}
    pending = []
    for doc in documents:
        doc_id = str(doc.get("id", ""))
        if pattern.match(doc_id):
            continue
        if doc_id in copied:
            mapping[doc_id] = copied[doc_id]
        else:
            pending.append(doc)

    for doc in sorted(pending, key=lambda d: (str(d.get("name") or "").lower(), str(d.get("id")))):
        mapping[str(doc["id"])] = kind.format_id(next_number)
        next_number += 1
    return mapping


class RenumberService:
    """Service that renumbers entity ids and rewrites references to them."""

    def __init__(
        self,
        db: LedgerStore,
        start: int = DEFAULT_START,
        on_progress: Optional[ProgressCallback] = None,
        max_batch_operations: Optional[int] = None,
    ):
        self.db = db
        self.start = start
        self.on_progress = on_progress
        self.max_batch_operations = max_batch_operations

    def renumber(self, kind_name: str, dry_run: bool = False) -> RenumberResult:
        """Renumber every non-conforming id of one entity kind.

        Args:
            kind_name: One of ``RENUMBER_KINDS``
            dry_run: Only compute the mapping

        Returns:
            RenumberResult with the mapping and write counts

        Raises:
            ValidationError: If the kind is unknown
        """
        kind = get_kind(kind_name)
        documents = self.db.get_all(kind.collection)
        mapping = build_mapping(kind, documents, self.start)
        logger.info("renumber_planned", kind=kind.name, renamed=len(mapping), dry_run=dry_run)
        if dry_run or not mapping:
            return RenumberResult(kind=kind.name, mapping=mapping, dry_run=dry_run)

        now = datetime.now(UTC).isoformat()
        writer = BatchWriter(self.db, on_progress=self.on_progress, max_operations=self.max_batch_operations)
        existing = {str(doc.get("id")) for doc in documents}
        errors: list[FixError] = []

        creates = [
            WriteOperation.set(kind.collection, {**doc, "id": mapping[doc["id"]], "previousId": doc["id"], "updatedAt": now})
            for doc in documents
            if doc.get("id") in mapping and mapping[doc["id"]] not in existing
        ]
        created = writer.write(single_operation_units(creates))
        errors.extend(created.errors)

        updates: dict[tuple[str, str], Document] = {}
        for collection, field_name in kind.references:
            for doc in self.db.get_all(collection):
                value = doc.get(field_name)
                if isinstance(value, str) and value in mapping:
                    fields = updates.setdefault((collection, str(doc["id"])), {"updatedAt": now})
                    fields[field_name] = mapping[value]
        rewritten = writer.write(
            single_operation_units(
                WriteOperation.update(collection, doc_id, fields) for (collection, doc_id), fields in updates.items()
            )
        )
        errors.extend(rewritten.errors)

        deleted_count = 0
        if errors:
            logger.warning("renumber_incomplete", kind=kind.name, errors=len(errors))
        else:
            deleted = writer.write(
                single_operation_units(WriteOperation.delete(kind.collection, old_id) for old_id in mapping)
            )
            errors.extend(deleted.errors)
            deleted_count = len(deleted.written)

        logger.info(
            "renumber_finished",
            kind=kind.name,
            created=len(created.written),
            references_updated=len(rewritten.written),
            deleted=deleted_count,
        )
        return RenumberResult(
            kind=kind.name,
            mapping=mapping,
            created=len(created.written),
            references_updated=len(rewritten.written),
            deleted=deleted_count,
            errors=tuple(errors),
        )
