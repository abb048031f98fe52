"""
Accumulation of crawled records and the statistics written at the end of a crawl.
"""

import json
import logging
import math
from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional, Union

from .base import CrawlReport, CrawlStatistics, PropertyRecord

logger = logging.getLogger(__name__)

PROPERTIES_FILENAME = 'all_properties.json'
STATISTICS_FILENAME = 'statistics.json'


def compute_statistics(records: List[PropertyRecord]) -> CrawlStatistics:
    """
    Derive statistics from the full record list.

    The average price only covers priced records and is None when there
    are none. Records without a city are counted under "".
    """
    prices = [r.price_amount for r in records if r.price_amount is not None]
    # Halves round up
    average = math.floor(sum(prices) / len(prices) + 0.5) if prices else None
    by_city = Counter(r.city or '' for r in records)
    return CrawlStatistics(
        total=len(records),
        with_price=len(prices),
        average_price=average,
        by_city=dict(by_city),
    )


class ResultAggregator:
    """
    Append-only store of the records produced during one crawl.

    Usage:
        aggregator = ResultAggregator()
        aggregator.accumulate(record)
        report = aggregator.finalize()
        aggregator.persist(report, settings.results_dir)
    """

    def __init__(self):
        self._records: List[PropertyRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> List[PropertyRecord]:
        return list(self._records)

    def accumulate(self, record: PropertyRecord):
        self._records.append(record)

    def finalize(self) -> CrawlReport:
        records = list(self._records)
        return CrawlReport(records=records, statistics=compute_statistics(records))

    def persist(self, report: CrawlReport, results_dir: Union[str, Path]) -> Optional[Dict[str, Path]]:
        """
        Write the records and statistics as JSON.

        Returns:
            Paths written, or None when there was nothing to write
        """
        if not report.records:
            logger.info("No properties collected - nothing to write")
            return None

        results_dir = Path(results_dir)
        results_dir.mkdir(parents=True, exist_ok=True)

        properties_path = results_dir / PROPERTIES_FILENAME
        statistics_path = results_dir / STATISTICS_FILENAME

        with open(properties_path, 'w', encoding='utf-8') as f:
            json.dump([r.to_dict() for r in report.records], f, ensure_ascii=False, indent=2)
        logger.info(f"💾 Saved {len(report.records)} properties to {properties_path}")

        with open(statistics_path, 'w', encoding='utf-8') as f:
            json.dump(report.statistics.to_dict(), f, ensure_ascii=False, indent=2)
        logger.info(f"📊 Statistics written to {statistics_path}")

        return {'properties': properties_path, 'statistics': statistics_path}


def load_statistics(results_dir: Union[str, Path]) -> Optional[Dict]:
    """Read the statistics of the last crawl, None if no crawl has written any."""
    path = Path(results_dir) / STATISTICS_FILENAME
    if not path.exists():
        return None
    with open(path, encoding='utf-8') as f:
        return json.load(f)
