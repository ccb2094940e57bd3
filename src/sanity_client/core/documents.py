import threading
from typing import TYPE_CHECKING, Iterable, Optional

from ..clients.errors import InvalidRequestError
from ..clients.request import Request
from .api_types import GetDocumentsResponse
from .query import MAX_GET_REQUEST_URL_LENGTH

if TYPE_CHECKING:
    from ..clients.sanity import SanityClient


class GetDocumentsBuilder:
    """Builder for fetching documents by ID through the doc endpoint."""

    def __init__(self, client: "SanityClient", doc_ids: Iterable[str]):
        self._client = client
        self.doc_ids = list(doc_ids)
        self._tag: Optional[str] = None

    def tag(self, tag: str) -> "GetDocumentsBuilder":
        self._tag = tag
        return self

    def build(self) -> Request:
        """Build the GET request.

        Raises:
            InvalidRequestError: If no IDs were given or the URL would be too long.
        """
        if not self.doc_ids:
            raise InvalidRequestError("no document ID specified")

        req = (
            self._client.new_api_request()
            .append_path("data/doc", self._client.config.dataset, ",".join(self.doc_ids))
            .tag(self._tag, self._client.config.default_tag)
        )
        if len(req.encode_url()) > MAX_GET_REQUEST_URL_LENGTH:
            raise InvalidRequestError("max URL length exceeded")
        return req

    def execute(
        self,
        cancel: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> GetDocumentsResponse:
        """Fetch the documents. An empty ID list returns an empty response without a request.

        Raises:
            InvalidRequestError: On validation failure.
            RequestError: On API failure.
        """
        if not self.doc_ids:
            return GetDocumentsResponse()

        resp = self._client.do(self.build(), cancel=cancel, deadline=deadline)
        return GetDocumentsResponse.from_dict(resp)
