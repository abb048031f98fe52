"""
Base data structures for the property crawler.

This module defines the records, crawl state and error types shared by the
extractors, the pagination navigator and the crawl controller.
"""

from typing import List, Dict, Optional, Any, Tuple, Generic, TypeVar
from dataclasses import dataclass, field, asdict
from enum import Enum
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

T = TypeVar('T')


# ANSI color codes for terminal output
class Colors:
    """ANSI color codes for colorized logging."""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'

    # Colors
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    CYAN = '\033[96m'
    GRAY = '\033[90m'

    @staticmethod
    def green(text):
        return f"{Colors.GREEN}{text}{Colors.RESET}"

    @staticmethod
    def yellow(text):
        return f"{Colors.YELLOW}{text}{Colors.RESET}"

    @staticmethod
    def red(text):
        return f"{Colors.RED}{text}{Colors.RESET}"

    @staticmethod
    def cyan(text):
        return f"{Colors.CYAN}{text}{Colors.RESET}"

    @staticmethod
    def gray(text):
        return f"{Colors.GRAY}{text}{Colors.RESET}"

    @staticmethod
    def bold(text):
        return f"{Colors.BOLD}{text}{Colors.RESET}"


# ============================================================
# ERRORS
# ============================================================

class CrawlError(Exception):
    """Base class for crawl errors."""


class CrawlFatalError(CrawlError):
    """Error that aborts the whole crawl."""


class BrowserSessionError(CrawlFatalError):
    """The browser session could not be established."""


class ListingNotLoadedError(CrawlFatalError):
    """The listing grid marker never appeared within its bound."""


class ElementWaitTimeout(CrawlError):
    """A bounded wait for an element expired."""

    def __init__(self, selector: str, timeout: float):
        super().__init__(f"Timed out after {timeout:.1f}s waiting for '{selector}'")
        self.selector = selector
        self.timeout = timeout


# ============================================================
# OPTIONAL LOOKUP RESULTS
# ============================================================

@dataclass(frozen=True)
class Found(Generic[T]):
    """A best-effort lookup that produced a value."""
    value: T

    def value_or(self, default: T) -> T:
        return self.value

    def __bool__(self) -> bool:
        return True


class _Absent:
    """A best-effort lookup that produced nothing."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def value_or(self, default):
        return default

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return 'ABSENT'


ABSENT = _Absent()


# ============================================================
# RECORDS
# ============================================================

@dataclass(frozen=True)
class Address:
    """Address parsed out of a listing title."""
    street: str = ''
    neighborhood: str = ''
    city: str = ''


@dataclass(frozen=True)
class ListingSummary:
    """Card-level fields read from a listing page."""
    title: str
    url: str
    price_amount: Optional[int] = None
    rooms: Optional[int] = None
    area_sqm: Optional[int] = None
    extras: str = ''


@dataclass(frozen=True)
class DetailFields:
    """Fields read from a property detail page."""
    detailed_description: str = ''
    features: Tuple[str, ...] = ()
    energy_rating: str = ''


@dataclass(frozen=True)
class PropertyRecord:
    """One extracted, normalized property."""
    url: str
    title: str = ''

    # Address (never None)
    street: str = ''
    neighborhood: str = ''
    city: str = ''

    # Card details
    price_amount: Optional[int] = None
    rooms: Optional[int] = None
    area_sqm: Optional[int] = None
    extras: str = ''
    garage: bool = False

    # Detail page
    detailed_description: str = ''
    features: Tuple[str, ...] = ()
    energy_rating: str = ''

    def __post_init__(self):
        for name in ('price_amount', 'rooms', 'area_sqm'):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} must not be negative, got {value}")

    @property
    def address_line(self) -> str:
        return ', '.join(part for part in (self.street, self.neighborhood, self.city) if part)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['features'] = list(self.features)
        return data


@dataclass
class ItemFailure:
    """A detail page that could not be turned into a record."""
    url: str
    error: str


@dataclass
class BatchOutcome:
    """Partitioned result of processing one listing page's batch."""
    successes: List[PropertyRecord] = field(default_factory=list)
    failures: List[ItemFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.successes) + len(self.failures)


# ============================================================
# CRAWL STATE
# ============================================================

class CrawlState(Enum):
    """States of the crawl controller."""
    IDLE = "idle"
    LISTING_LOADED = "listing_loaded"
    BATCH_COLLECTED = "batch_collected"
    ITEM_PROCESSING = "item_processing"
    RETURNED_TO_LISTING = "returned_to_listing"
    ADVANCING = "advancing"
    TERMINATED = "terminated"


@dataclass
class CrawlSession:
    """Transient crawl position and running counts."""
    base_url: str
    current_listing_url: Optional[str] = None
    page_index: int = 1
    succeeded: int = 0
    failed: int = 0
    visited_pages: List[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def record_batch(self, outcome: BatchOutcome):
        self.succeeded += len(outcome.successes)
        self.failed += len(outcome.failures)

    @property
    def duration_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self.started_at).total_seconds()


@dataclass(frozen=True)
class CrawlStatistics:
    """Statistics derived from the accumulated records."""
    total: int = 0
    with_price: int = 0
    average_price: Optional[int] = None
    by_city: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': self.total,
            'with_price': self.with_price,
            'average_price': self.average_price,
            'by_city': dict(self.by_city),
        }


@dataclass(frozen=True)
class CrawlReport:
    """Finalized records plus their statistics."""
    records: List[PropertyRecord]
    statistics: CrawlStatistics
