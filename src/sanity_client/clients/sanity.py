"""Sanity data API client.

This module provides the SanityClient class, the entry point for building
queries, mutations and document fetches against one project and dataset.
"""

import dataclasses
import logging
import threading
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import requests

from ..config.config import DEFAULT_DATASET, V20210325, Callbacks, ClientConfig, Version
from ..core.documents import GetDocumentsBuilder
from ..core.mutation import MutationBuilder
from ..core.query import QueryBuilder
from .http import DEFAULT_TIMEOUT, HttpClient, RetryPolicy
from .request import Request

logger = logging.getLogger(__name__)

__version__ = "0.1.0"

USER_AGENT = f"Sanity Python client/{__version__}"

HeadersArg = Union[Dict[str, Union[str, List[str]]], Iterable[Tuple[str, str]], None]


def _header_pairs(headers: HeadersArg) -> Tuple[Tuple[str, str], ...]:
    if headers is None:
        return ()
    items = headers.items() if isinstance(headers, dict) else headers
    pairs = []
    for name, value in items:
        values = value if isinstance(value, (list, tuple)) else [value]
        pairs.extend((name, v) for v in values)
    return tuple(pairs)


class SanityClient:
    """Client for one Sanity project and dataset.

    Configuration is fixed once the client exists. ``with_options()``
    returns a new client on a copied config, so a client can be shared
    between threads and each call runs its own retry loop.

    Attributes:
        config: The validated, read-only ClientConfig.
        http: The HttpClient executing requests with retry.
    """

    def __init__(
        self,
        project_id: str,
        dataset: str = DEFAULT_DATASET,
        *,
        api_version: Union[Version, str] = V20210325,
        token: str = "",
        use_cdn: bool = False,
        api_host: Optional[str] = None,
        headers: HeadersArg = None,
        retry_policy: Optional[RetryPolicy] = None,
        callbacks: Optional[Callbacks] = None,
        default_tag: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the client.

        Args:
            project_id: The Sanity project ID (required).
            dataset: The dataset name (required).
            api_version: API version, e.g. "2021-03-25", "1" or "X".
            token: Optional API token sent as a bearer token.
            use_cdn: Send queries through the API CDN unless ``api_host`` is set.
            api_host: Optional ``scheme://host`` replacing the project host.
            headers: Extra headers added on top of the defaults.
            retry_policy: Backoff configuration for retriable failures.
            callbacks: Hooks for query results and retries.
            default_tag: Request tag used when a builder sets none.
            timeout: Transport timeout in seconds.
            session: Optional requests.Session used as the transport.

        Raises:
            ConfigurationError: If the project ID, dataset or version is invalid.
        """
        config = ClientConfig(
            project_id=project_id,
            dataset=dataset,
            api_version=Version(api_version),
            token=token,
            use_cdn=use_cdn,
            api_host=api_host,
            headers=_header_pairs(headers),
            retry_policy=retry_policy or RetryPolicy(),
            callbacks=callbacks or Callbacks(),
            default_tag=default_tag,
            timeout=timeout,
            session=session,
        )
        self._setup(config)

    @classmethod
    def from_config(cls, config: ClientConfig) -> "SanityClient":
        client = cls.__new__(cls)
        client._setup(config)
        return client

    def _setup(self, config: ClientConfig) -> None:
        config.validate()
        self.config = config
        self.http = HttpClient(
            session=config.session,
            retry_policy=config.retry_policy,
            timeout=config.timeout,
            on_error_will_retry=config.callbacks.on_error_will_retry,
        )
        if config.session is None:
            self.config = dataclasses.replace(config, session=self.http.session)
        logger.debug(
            "Configured client for project %s dataset %s (api %s, query %s)",
            config.project_id,
            config.dataset,
            self.config.api_url,
            self.config.query_url,
        )

    def with_options(self, **changes: Any) -> "SanityClient":
        """Return a new client with some options changed.

        Accepts the same keyword arguments as the constructor. Headers are
        appended to the existing custom headers. This client is left untouched.
        """
        if "headers" in changes:
            changes["headers"] = self.config.headers + _header_pairs(changes["headers"])
        if "api_version" in changes:
            changes["api_version"] = Version(changes["api_version"])
        return SanityClient.from_config(dataclasses.replace(self.config, **changes))

    def _set_headers(self, req: Request) -> Request:
        req.header("User-Agent", USER_AGENT)
        if self.config.token:
            req.header("Authorization", "Bearer " + self.config.token)
        for name, value in self.config.headers:
            req.header(name, value)
        return req

    def new_api_request(self) -> Request:
        return self._set_headers(Request(self.config.api_url))

    def new_query_request(self) -> Request:
        return self._set_headers(Request(self.config.query_url))

    def do(
        self,
        req: Request,
        cancel: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> Dict[str, Any]:
        return self.http.execute(req, cancel=cancel, deadline=deadline)

    def query(self, query: str) -> QueryBuilder:
        """Return a new query builder for a GROQ query."""
        return QueryBuilder(self, query)

    def mutate(self) -> MutationBuilder:
        """Return a new mutation builder."""
        return MutationBuilder(self)

    def get_documents(self, *doc_ids: str) -> GetDocumentsBuilder:
        """Return a new builder fetching documents by ID."""
        return GetDocumentsBuilder(self, doc_ids)
