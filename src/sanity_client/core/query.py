import logging
import threading
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from ..clients.errors import MarshalError
from ..clients.request import Request
from .api_types import QueryResult, dumps, marshal_json

if TYPE_CHECKING:
    from ..clients.sanity import SanityClient

logger = logging.getLogger(__name__)

MAX_GET_REQUEST_URL_LENGTH = 1024


class QueryBuilder:
    """Builder for a GROQ query.

    The query goes out as a GET unless the encoded URL would exceed
    MAX_GET_REQUEST_URL_LENGTH, in which case the same query and parameters
    are POSTed as a JSON body. Callers see the same QueryResult either way.
    """

    def __init__(self, client: "SanityClient", query: str):
        self._client = client
        self.query = query
        self._params: Dict[str, Any] = {}
        self._tag: Optional[str] = None

    def param(self, name: str, value: Any) -> "QueryBuilder":
        """Add a parameter usable in the query as ``$name``. The value must be JSON-serializable."""
        self._params[name] = value
        return self

    def params(self, values: Mapping[str, Any]) -> "QueryBuilder":
        for name, value in values.items():
            self.param(name, value)
        return self

    def tag(self, tag: str) -> "QueryBuilder":
        self._tag = tag
        return self

    def _encoded_params(self) -> Dict[str, str]:
        encoded = {}
        for name, value in self._params.items():
            try:
                encoded[name] = dumps(value)
            except (TypeError, ValueError) as e:
                raise MarshalError(f"marshaling parameter {name!r} to JSON: {e}") from e
        return encoded

    def build_get(self) -> Request:
        req = (
            self._client.new_query_request()
            .append_path("data/query", self._client.config.dataset)
            .tag(self._tag, self._client.config.default_tag)
            .param("query", self.query)
        )
        for name, value in self._encoded_params().items():
            req.param("$" + name, value)
        return req

    def build_post(self) -> Request:
        body = {
            "query": self.query,
            "params": {name: marshal_json(value) for name, value in self._params.items()},
        }
        return (
            self._client.new_query_request()
            .set_method("POST")
            .append_path("data/query", self._client.config.dataset)
            .tag(self._tag, self._client.config.default_tag)
            .marshal_body(body)
        )

    def build(self) -> Request:
        req = self.build_get()
        if len(req.encode_url()) > MAX_GET_REQUEST_URL_LENGTH:
            logger.debug("Query URL exceeds %d characters, sending as POST", MAX_GET_REQUEST_URL_LENGTH)
            req = self.build_post()
        return req

    def execute(
        self,
        cancel: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> QueryResult:
        """Perform the query.

        Raises:
            MarshalError: If a parameter cannot be encoded as JSON.
            RequestError: On API failure.
        """
        resp = self._client.do(self.build(), cancel=cancel, deadline=deadline)
        result = QueryResult.from_dict(resp)

        on_query_result = self._client.config.callbacks.on_query_result
        if on_query_result is not None:
            on_query_result(result)

        return result
