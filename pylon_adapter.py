"""
PYLON REST API Adapter.

Wraps the three endpoints the usage report needs:

    GET  /{version}/pylon/get          - paginated index (subscription) listing
    GET  /{version}/account/identity   - paginated identity listing
    POST /{version}/pylon/analyze      - analysis query against one index

Requests authenticate with ``Authorization: <username>:<api_key>``. Failures
are translated to the APIError family by handle_api_errors and are never
retried.
"""

import logging
from typing import Dict, Any, Optional

import requests

from config import ReporterConfig
from error_handling import handle_api_errors

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30


def setup_logging(log_file: str = 'usage_reporter.log'):
    """Configure centralized logging for the usage reporter."""
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    root_logger.handlers.clear()

    file_handler = logging.FileHandler(log_file, mode='a')
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    file_handler.setFormatter(file_formatter)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.ERROR)
    console_formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s'
    )
    console_handler.setFormatter(console_formatter)

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)


def _pylon_headers(username: str, api_key: str) -> Dict[str, str]:
    return {
        'Authorization': f'{username}:{api_key}',
        'Accept': 'application/json',
        'Content-Type': 'application/json'
    }


def _log_rate_limit(response: requests.Response) -> None:
    remaining = response.headers.get('X-RateLimit-Remaining')
    cost = response.headers.get('X-RateLimit-Cost')
    if remaining is not None or cost is not None:
        logger.debug(f"Rate limit: cost={cost} remaining={remaining}")


def _pylon_request(
    method: str,
    url: str,
    headers: Dict[str, str],
    params: Optional[Dict[str, Any]] = None,
    json_body: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    response = requests.request(
        method,
        url,
        headers=headers,
        params=params,
        json=json_body,
        timeout=REQUEST_TIMEOUT
    )
    response.raise_for_status()
    _log_rate_limit(response)
    return response.json()


class PylonClient:
    """Client for the PYLON admin, identity and analysis endpoints."""

    def __init__(self, config: ReporterConfig):
        self.config = config
        self.base_url = f"{config.api_url.rstrip('/')}/{config.api_version}"
        self.headers = _pylon_headers(config.username, config.api_key)

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint}"

    def for_identity(self, api_key: str) -> "PylonClient":
        """Return a client that authenticates with an identity's API key."""
        return PylonClient(self.config.with_api_key(api_key))

    @handle_api_errors(endpoint="pylon/get")
    def list_indexes(self, page: int = 1, per_page: Optional[int] = None) -> Dict[str, Any]:
        """
        Fetch one page of indexes.

        Returns:
            Response body: ``{count, page, pages, per_page, subscriptions}``
        """
        per_page = per_page or self.config.page_size
        logger.info(f"Fetching index page {page} (per_page={per_page})")
        return _pylon_request(
            'GET',
            self._url('pylon/get'),
            self.headers,
            params={'page': page, 'per_page': per_page}
        )

    @handle_api_errors(endpoint="account/identity")
    def list_identities(self, label: str = '', per_page: Optional[int] = None, page: int = 1) -> Dict[str, Any]:
        """
        Fetch one page of identities.

        Returns:
            Response body: ``{count, identities}``
        """
        per_page = per_page or self.config.page_size
        params: Dict[str, Any] = {'per_page': per_page, 'page': page}
        if label:
            params['label'] = label
        logger.info(f"Fetching identity page {page} (per_page={per_page})")
        return _pylon_request('GET', self._url('account/identity'), self.headers, params=params)

    @handle_api_errors(endpoint="pylon/analyze")
    def analyze(
        self,
        filter: str,
        parameters: Dict[str, Any],
        hash: str = '',
        start: Optional[int] = None,
        end: Optional[int] = None,
        index_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Run an analysis query against an index.

        Either ``index_id`` or the legacy ``hash`` identifies the index.

        Returns:
            Response body: ``{interactions, unique_authors, analysis}``
        """
        body: Dict[str, Any] = {'parameters': parameters, 'filter': filter}
        if index_id:
            body['id'] = index_id
        elif hash:
            body['hash'] = hash
        if start is not None:
            body['start'] = start
        if end is not None:
            body['end'] = end

        logger.info(f"Analyzing index {index_id or hash} from {start} to {end or 'now'}")
        return _pylon_request('POST', self._url('pylon/analyze'), self.headers, json_body=body)
