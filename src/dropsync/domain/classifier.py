"""
Record Classifier - business rules deciding where a dropped row goes.

This module provides THE authoritative logic for routing a source row.
The sync orchestrator feeds it every row once per run; the output
decides which rows are appended to which destination and which keys
enter the deletion queue.

Architecture Note:
    - Pure domain logic - no I/O, no store calls
    - Header positions and date context are precomputed once per run
    - Rejections are data (reasons), never exceptions

Rules, in order:
    1. Only rows whose status normalizes to the target status are classified
    2. Reject if a payment-set cell is blank while its month-year
       neighbour (strictly the next column) is filled
    3. Reject if review is the block literal, or a date on/after the
       first day of next month (unparseable review = no opinion)
    4. Key already in a destination -> DUPLICATE_SKIP (still queued)
    5. Type normalizes to the route-B literal -> ROUTE_B, else ROUTE_A
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Sequence

from dropsync.domain.errors import ConfigurationError
from dropsync.domain.keys import is_blank, normalize_key, normalize_type
from dropsync.domain.models import ClassificationResult, ClassificationRun, Decision
from dropsync.domain.settings import ClassifierSettings, HeaderNames

logger = logging.getLogger(__name__)

SUMMARY_KEY = "SUMMARY"

_MONTH_NAME_YEAR = re.compile(
    r"^(jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*[\s\-/.,']*(\d{2}|\d{4})$"
)
_NUMERIC_MONTH_YEAR = re.compile(r"^(0?[1-9]|1[0-2])[/\-.](\d{4})$")
_YEAR_NUMERIC_MONTH = re.compile(r"^(\d{4})[/\-.](0?[1-9]|1[0-2])$")

REVIEW_DATE_FORMATS = (
    "%m/%d/%Y",
    "%m/%d/%y",
    "%Y-%m-%d",
    "%d-%b-%Y",
    "%d-%b-%y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%Y-%m-%d %H:%M:%S",
)


# =============================================================================
# Header Handling
# =============================================================================

def header_label(value: Any) -> str:
    """Human-readable label of a header cell (date headers become 'Jan 2025')."""
    if isinstance(value, (datetime, date)):
        return value.strftime("%b %Y")
    return "" if value is None else str(value).strip()


@dataclass
class HeaderMap:
    """
    Sheet-wide header -> column index mapping.

    Indices are 0-based positions in a row's value list. Lookups are
    by normalized header name.
    """
    headers: list[Any]
    _index: dict[str, int] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        for idx, header in enumerate(self.headers):
            name = normalize_key(header_label(header))
            # First occurrence wins for duplicate header labels
            if name and name not in self._index:
                self._index[name] = idx

    def index_of(self, name: str) -> int | None:
        return self._index.get(normalize_key(name))

    def require(self, name: str, sheet: str = "") -> int:
        """
        Get a required column index.

        Raises:
            ConfigurationError: If the header is missing
        """
        idx = self.index_of(name)
        if idx is None:
            where = f" on sheet '{sheet}'" if sheet else ""
            raise ConfigurationError(f"Required header '{name}' not found{where}")
        return idx

    def label(self, idx: int) -> str:
        return header_label(self.headers[idx]) if idx < len(self.headers) else ""

    def __len__(self) -> int:
        return len(self.headers)


def is_month_year_header(value: Any) -> bool:
    """
    Check if a header cell is month-year formatted.

    Date-typed header cells count, as do strings like 'Jan 2025',
    'January-2025', 'Jan-25', '01/2025' and '2025-01'.
    """
    if isinstance(value, (datetime, date)):
        return True
    text = normalize_key(value)
    if not text:
        return False
    return bool(
        _MONTH_NAME_YEAR.match(text)
        or _NUMERIC_MONTH_YEAR.match(text)
        or _YEAR_NUMERIC_MONTH.match(text)
    )


def find_payment_month_pairs(
    headers: Sequence[Any],
    payment_pattern: str,
) -> list[tuple[int, int]]:
    """
    Find strict payment-set / month-year header adjacencies.

    Pairing is positional: header i-1 must match the payment pattern
    AND header i must be month-year formatted. Nothing is matched by
    name across non-adjacent columns.

    Returns:
        List of (payment_index, month_index) pairs
    """
    pattern = re.compile(payment_pattern, re.IGNORECASE)
    pairs = []
    for i in range(1, len(headers)):
        left = header_label(headers[i - 1])
        if left and pattern.search(left) and is_month_year_header(headers[i]):
            pairs.append((i - 1, i))
    return pairs


# =============================================================================
# Date Handling
# =============================================================================

def first_of_next_month(now: datetime) -> datetime:
    """First instant of the calendar month after now (same tzinfo)."""
    if now.month == 12:
        return now.replace(year=now.year + 1, month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    return now.replace(month=now.month + 1, day=1, hour=0, minute=0, second=0, microsecond=0)


def parse_review_date(value: Any) -> date | None:
    """
    Parse a review cell as a calendar date.

    Returns:
        The date, or None when the value is blank or unparseable
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if is_blank(value):
        return None
    text = str(value).strip()
    for fmt in REVIEW_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


@dataclass(frozen=True)
class ClassifierContext:
    """Values precomputed once per sync run."""
    payment_pairs: tuple[tuple[int, int], ...]
    next_month_start: date


# =============================================================================
# Classifier
# =============================================================================

class RecordClassifier:
    """
    Evaluates the routing rules against source rows.

    Usage:
        classifier = RecordClassifier(header_row, header_names, rules,
                                      existing_keys=dest_keys, now=now)
        run = classifier.classify_all(store_rows)
    """

    def __init__(
        self,
        headers: Sequence[Any],
        header_names: HeaderNames,
        rules: ClassifierSettings,
        existing_keys: Iterable[str] = (),
        now: datetime | None = None,
        sheet_name: str = "",
    ) -> None:
        """
        Initialize classifier for one run.

        Args:
            headers: Source header row values
            header_names: Configured header labels
            rules: Business-rule literals
            existing_keys: Keys already present in either destination
            now: Run timestamp (for the next-month boundary)
            sheet_name: Source tab name, for error messages

        Raises:
            ConfigurationError: If a required header is missing
        """
        self.header_map = HeaderMap(list(headers))
        self.rules = rules
        self.key_idx = self.header_map.require(header_names.key, sheet_name)
        self.status_idx = self.header_map.require(header_names.status, sheet_name)
        self.type_idx = self.header_map.require(header_names.type, sheet_name)
        self.review_idx = self.header_map.require(header_names.review, sheet_name)

        self._target_status = normalize_key(rules.target_status)
        self._route_b_type = normalize_type(rules.route_b_type)
        self._block_literal = normalize_key(rules.review_block_literal)
        self._existing = {normalize_key(k) for k in existing_keys if normalize_key(k)}

        now = now or datetime.now()
        self.context = ClassifierContext(
            payment_pairs=tuple(find_payment_month_pairs(self.header_map.headers, rules.payment_header_pattern)),
            next_month_start=first_of_next_month(now).date(),
        )
        logger.debug(
            "Classifier ready: %d payment/month pairs, next month starts %s",
            len(self.context.payment_pairs),
            self.context.next_month_start,
        )

    @staticmethod
    def _cell(values: Sequence[Any], idx: int) -> Any:
        return values[idx] if idx < len(values) else None

    def payment_reasons(self, values: Sequence[Any]) -> list[str]:
        """Reasons for every pair with a blank payment set and a filled month."""
        reasons = []
        for pay_idx, month_idx in self.context.payment_pairs:
            if is_blank(self._cell(values, pay_idx)) and not is_blank(self._cell(values, month_idx)):
                reasons.append(
                    f"'{self.header_map.label(pay_idx)}' is blank but "
                    f"'{self.header_map.label(month_idx)}' has a value"
                )
        return reasons

    def review_reasons(self, values: Sequence[Any]) -> list[str]:
        """Reason for a blocking review value, if any."""
        review = self._cell(values, self.review_idx)
        if normalize_key(review) == self._block_literal:
            return [f"Review is '{self.rules.review_block_literal}'"]
        review_date = parse_review_date(review)
        if review_date is not None and review_date >= self.context.next_month_start:
            return [f"Review date {review_date.isoformat()} is in a future month"]
        return []

    def classify_row(
        self,
        values: Sequence[Any],
        row_number: int = 0,
    ) -> ClassificationResult | None:
        """
        Classify one source row.

        Returns:
            ClassificationResult, or None when the row is not a target
            (status mismatch or blank key)
        """
        if normalize_key(self._cell(values, self.status_idx)) != self._target_status:
            return None

        key = normalize_key(self._cell(values, self.key_idx))
        if not key:
            logger.debug("Row %d has target status but no key - skipped", row_number)
            return None

        reasons = self.payment_reasons(values) + self.review_reasons(values)
        if reasons:
            decision = Decision.REJECT
        elif key in self._existing:
            decision = Decision.DUPLICATE_SKIP
        elif normalize_type(self._cell(values, self.type_idx)) == self._route_b_type:
            decision = Decision.ROUTE_B
        else:
            decision = Decision.ROUTE_A

        return ClassificationResult(
            key=key,
            decision=decision,
            reasons=reasons,
            row_number=row_number,
            values=list(values),
        )

    def classify_all(
        self,
        rows: Iterable[tuple[int, Sequence[Any]]],
    ) -> ClassificationRun:
        """
        Classify every row of a run.

        A key routed earlier in the same run counts as already present,
        so a repeated source key is transferred only once.

        Args:
            rows: (row_number, values) pairs in scan order

        Returns:
            ClassificationRun with routing lists, deletion queue and
            exceptions (first entry is the aggregate summary)
        """
        run = ClassificationRun()
        queued: set[str] = set()
        rejections: list[tuple[str, str]] = []

        for row_number, values in rows:
            result = self.classify_row(values, row_number)
            if result is None:
                continue
            run.scanned += 1
            run.results.append(result)

            if result.decision is Decision.ROUTE_A:
                run.routed_a.append(result.key)
            elif result.decision is Decision.ROUTE_B:
                run.routed_b.append(result.key)
            elif result.decision is Decision.DUPLICATE_SKIP:
                run.duplicates.append(result.key)
            else:
                rejections.append((result.key, "; ".join(result.reasons)))

            if not result.decision.is_queued:
                continue
            self._existing.add(result.key)
            if result.key not in queued:
                queued.add(result.key)
                run.deletion_queue.append(result.key)

        summary = (
            f"{run.scanned} {self.rules.target_status} rows: "
            f"{len(run.routed_a)} to A, {len(run.routed_b)} to B, "
            f"{len(run.duplicates)} duplicates, {len(rejections)} rejected, "
            f"{len(run.deletion_queue)} queued for deletion"
        )
        run.exceptions = [(SUMMARY_KEY, summary)] + rejections
        logger.info("Classification complete: %s", summary)
        return run
