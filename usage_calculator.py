"""
Usage Calculator Module for PYLON interaction volume.

Enumerates every index on the account, counts indexes created inside the
billing period directly from their listed volume, and runs a time-series
analysis query for indexes that started before the billing period, since
their listed volume covers their whole lifetime.
"""

import logging
import math
from typing import Dict, List, Optional, Tuple

from billing_period import BillingWindow
from config import ReporterConfig
from error_handling import (
    handle_pipeline_phase,
    IndexEnumerationError,
    AnalysisError,
)
from models import AnalysisResult, Identity, Index
from progress import ProgressReporter
from pylon_adapter import PylonClient
from validators import validate_subscriptions

logger = logging.getLogger(__name__)

TIME_SERIES_PARAMS = {"analysis_type": "timeSeries", "parameters": {"interval": "day"}}

EXCLUDED = "excluded"
FULLY_KNOWN = "fully_known"
NEEDS_ANALYSIS = "needs_analysis"


def delimit(value: int) -> str:
    """Format a count with thousands separators."""
    return f"{value:,}"


def classify_index(index: Index, billing_start_time: int) -> str:
    """
    Decide how an index contributes to the billing period.

    Returns:
        EXCLUDED if it recorded nothing in the period, FULLY_KNOWN if it
        started inside the period, NEEDS_ANALYSIS otherwise.
    """
    if not index.qualifies(billing_start_time):
        return EXCLUDED
    if index.started_within(billing_start_time):
        return FULLY_KNOWN
    return NEEDS_ANALYSIS


class ReportState:
    """Aggregates built up over a single report run."""

    def __init__(self, billing_window: BillingWindow):
        self.billing_window = billing_window
        self.identities: Dict[str, Identity] = {}
        self.indexes_by_identity: Dict[str, Dict[str, Index]] = {}
        self.indexes_by_volume: Dict[int, List[Index]] = {}
        self.volume_by_index: Dict[str, int] = {}
        self.indexes_for_analysis: List[str] = []
        self.redacted_indexes: List[str] = []
        self.unanalyzed_indexes: List[str] = []
        self.invalid_indexes: List[str] = []
        self.indexes_found = 0
        self.volume = 0
        self.analyze_count = 0
        self.empty_pages = 0

    def register_index(self, index: Index) -> None:
        self.indexes_found += 1
        self.indexes_by_identity.setdefault(index.identity_id, {})[index.id] = index

    def queue_for_analysis(self, index: Index) -> None:
        if index.id not in self.indexes_for_analysis:
            self.indexes_for_analysis.append(index.id)

    def record_volume(self, index: Index, volume: int) -> None:
        self.indexes_by_volume.setdefault(volume, []).append(index)
        self.volume_by_index[index.id] = volume
        self.volume += volume

    def record_redacted(self, index_id: str) -> None:
        # Redacted counts stay at zero; the total is knowingly an undercount.
        self.volume_by_index[index_id] = 0
        self.redacted_indexes.append(index_id)

    def record_invalid(self, index_id: str) -> None:
        self.volume_by_index[index_id] = 0
        self.invalid_indexes.append(index_id)

    def pending_for_identity(self, identity_id: str) -> List[Index]:
        """Queued indexes owned by an identity, in listing order."""
        owned = self.indexes_by_identity.get(identity_id, {})
        return [index for index_id, index in owned.items() if index_id in self.indexes_for_analysis]

    def sorted_volume_groups(self) -> List[Tuple[int, List[Index]]]:
        """Indexes grouped by volume, highest volume first."""
        return [(volume, self.indexes_by_volume[volume]) for volume in sorted(self.indexes_by_volume, reverse=True)]

    def identity_label(self, index: Index) -> str:
        if index.identity_name:
            return index.identity_name
        identity = self.identities.get(index.identity_id)
        if identity is not None and identity.label:
            return identity.label
        return index.identity_id


class UsageCalculator:
    """
    Runs the index and identity enumeration phases against the API.
    """

    def __init__(
        self,
        client: PylonClient,
        billing_window: BillingWindow,
        config: Optional[ReporterConfig] = None,
        progress: Optional[ProgressReporter] = None,
        state: Optional[ReportState] = None
    ):
        """
        Initialize the usage calculator.

        Args:
            client: Account-level API client.
            billing_window: Start of the billing period being reported.
            config: Reporter configuration; defaults to the client's.
            progress: Progress sink; defaults to a silent reporter.
            state: Aggregates to update; a fresh ReportState if omitted.
        """
        self.client = client
        self.billing_window = billing_window
        self.config = config or client.config
        self.progress = progress or ProgressReporter()
        self.state = state or ReportState(billing_window)

    @property
    def billing_start_time(self) -> int:
        return self.billing_window.start_timestamp

    def add_index(self, index: Index) -> str:
        """Classify an index and fold it into the report state."""
        category = classify_index(index, self.billing_start_time)
        if category == EXCLUDED:
            return category

        self.state.register_index(index)
        if category == FULLY_KNOWN:
            self.state.record_volume(index, index.volume)
        else:
            self.state.queue_for_analysis(index)
        return category

    @handle_pipeline_phase(phase_name="INDEXES", error_cls=IndexEnumerationError)
    def enumerate_indexes(self) -> ReportState:
        """Page through every index on the account and classify each one."""
        page = 0
        pages = 1

        while page < pages:
            page += 1
            response = self.client.list_indexes(page, self.config.page_size)
            pages = response.get('pages') or 0

            subscriptions = response.get('subscriptions')
            if not subscriptions:
                self._handle_empty_page(page)
                continue

            indexes, rejected = validate_subscriptions(subscriptions)
            for index in indexes:
                self.add_index(index)
            if rejected:
                self._handle_invalid_records(page, rejected)

        pending = len(self.state.indexes_for_analysis)
        self.progress.done(
            "Index identification complete.",
            [
                f"Found {self.state.indexes_found} indexes, {pending} of which require analysis. "
                f"This will consume {pending * self.config.analysis_quota_cost} points "
                f"from your hourly PYLON /analyze API limit.",
                f"Indexes first created in this billing period represent {delimit(self.state.volume)} interactions.",
            ],
        )
        return self.state

    def _handle_empty_page(self, page: int) -> None:
        # Pagination continues; the page count alone ends the loop.
        self.state.empty_pages += 1
        logger.warning(f"Index page {page} returned no subscriptions")
        self.progress.error("No indexes found for this account. Did you remember to use your account API key?")

    def _handle_invalid_records(self, page: int, rejected: List[dict]) -> None:
        for record in rejected:
            data = record["data"]
            index_id = data.get("id") if isinstance(data, dict) else None
            self.state.record_invalid(str(index_id or f"page {page} position {record['index']}"))
        self.progress.error(
            f"{len(rejected)} indexes on page {page} could not be read and were counted as 0 interactions."
        )

    def analyze_index(self, identity: Identity, index: Index) -> AnalysisResult:
        """Query the in-period volume of one index with its identity's key."""
        if self.state.analyze_count == 0:
            self.progress.working(
                f"Executing analysis queries ({len(self.state.indexes_for_analysis)} total)"
            )

        client = self.client.for_identity(identity.api_key)
        response = client.analyze('', TIME_SERIES_PARAMS, '', self.billing_start_time, None, index.id)
        self.state.analyze_count += 1
        self.progress.tick(self.state.analyze_count)

        result = AnalysisResult.from_response(response)
        if result.redacted:
            logger.info(f"Analysis of index {index.id} was redacted")
            self.state.record_redacted(index.id)
        else:
            index.identity_name = identity.label
            self.state.record_volume(index, result.interactions)

        self.state.indexes_for_analysis.remove(index.id)
        return result

    @handle_pipeline_phase(phase_name="ANALYSIS", error_cls=AnalysisError)
    def analyze_indexes(self) -> ReportState:
        """Page through identities and analyze the queued indexes each owns."""
        self.progress.start("Fetching identity information")

        page = 0
        pages = 1
        while page < pages:
            page += 1
            response = self.client.list_identities('', self.config.page_size, page)
            identity_list = response.get('identities') or []

            new_identities = 0
            for raw_identity in identity_list:
                identity = Identity.model_validate(raw_identity)
                if identity.id in self.state.identities:
                    continue
                new_identities += 1
                self.state.identities[identity.id] = identity
                for index in self.state.pending_for_identity(identity.id):
                    self.analyze_index(identity, index)

            pages = self._identity_page_count(response, page, len(identity_list), new_identities)

        self.progress.finish_working()

        if self.state.indexes_for_analysis:
            self.state.unanalyzed_indexes = list(self.state.indexes_for_analysis)
            self.progress.error(
                f"{len(self.state.unanalyzed_indexes)} indexes could not be analyzed because "
                f"their identities were not listed (inactive identities cannot be queried)."
            )

        self.progress.done(
            f"Analyzed target indexes. {len(self.state.redacted_indexes)} indexes were redacted.",
            [f"The final volume count is: {delimit(self.state.volume)} interactions."],
        )
        return self.state

    def _identity_page_count(self, response: dict, page: int, returned: int, new_identities: int) -> int:
        # A page of already-seen identities means the server ignored `page`.
        if returned and not new_identities:
            return page
        count = response.get('count')
        if count is not None:
            return max(math.ceil(count / self.config.page_size), page)
        if returned < self.config.page_size:
            return page
        return page + 1

    def run(self) -> ReportState:
        self.progress.start(
            f"Calculating consumption for the billing period beginning on "
            f"{self.billing_window.start_date.isoformat()}"
        )
        self.enumerate_indexes()
        self.analyze_indexes()
        return self.state
