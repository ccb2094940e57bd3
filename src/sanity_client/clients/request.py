"""Request builder for a single call to the Sanity API.

A Request accumulates method, path, query parameters, headers and body and
renders them into the URL and arguments handed to the HTTP transport. Once a
body fails to marshal the builder keeps the error and every later call is a
no-op; the error surfaces when the request is rendered for sending.
"""

import enum
import numbers
from typing import Any, Dict, IO, List, Optional, Tuple, Union
from urllib.parse import quote, urlencode

from ..core.api_types import dumps
from .errors import MarshalError

_PATH_SAFE = "!$&'()*+,;=:@"


class Request:
    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")
        self.method = "GET"
        self._path = ""
        self._params: List[Tuple[str, str]] = []
        self._headers: List[Tuple[str, str]] = [("Accept", "application/json")]
        self._body: Optional[Union[bytes, IO[bytes]]] = None
        self.error: Optional[Exception] = None

    def set_method(self, method: str) -> "Request":
        if self.error is None:
            self.method = method.upper()
        return self

    def path(self, *segments: str) -> "Request":
        """Replace the path with the given segments."""
        if self.error is None:
            self._path = ""
        return self.append_path(*segments)

    def append_path(self, *segments: str) -> "Request":
        """Append path segments, joining them with exactly one "/".

        Each part is percent-escaped; characters legal in a URL path such as
        "," and ":" are kept as-is.
        """
        if self.error is not None:
            return self
        for segment in segments:
            for part in segment.split("/"):
                if part:
                    self._path += "/" + quote(part, safe=_PATH_SAFE)
        return self

    def param(self, name: str, value: Any) -> "Request":
        """Add a query parameter; repeated names accumulate.

        Accepts strings, booleans (rendered "true"/"false"), enums, numbers and
        any object with its own ``__str__``. Other types are a programming
        error and raise TypeError.
        """
        if self.error is not None:
            return self
        if isinstance(value, bool):
            text = "true" if value else "false"
        elif isinstance(value, enum.Enum):
            text = str(value.value)
        elif isinstance(value, str):
            text = value
        elif isinstance(value, numbers.Number) or type(value).__str__ is not object.__str__:
            text = str(value)
        else:
            raise TypeError(f"cannot add {name!r} of type {type(value).__name__} as parameter")
        self._params.append((name, text))
        return self

    def tag(self, tag: Optional[str], default_tag: Optional[str] = None) -> "Request":
        if tag:
            return self.param("tag", tag)
        if default_tag:
            return self.param("tag", default_tag)
        return self

    def header(self, name: str, value: str) -> "Request":
        """Add a header value; repeated names accumulate rather than overwrite."""
        if self.error is None:
            self._headers.append((name, value))
        return self

    def body(self, data: bytes) -> "Request":
        if self.error is None:
            self._body = bytes(data)
        return self

    def read_body(self, stream: IO[bytes]) -> "Request":
        if self.error is None:
            self._body = stream
        return self

    def marshal_body(self, value: Any) -> "Request":
        """Serialize ``value`` as the JSON body, deferring any failure."""
        if self.error is not None:
            return self
        try:
            self._body = dumps(value).encode("utf-8")
        except (TypeError, ValueError) as e:
            err = MarshalError(f"marshaling body value to JSON: {e}")
            err.__cause__ = e
            self.error = err
        return self

    @property
    def params(self) -> List[Tuple[str, str]]:
        return list(self._params)

    def headers(self) -> Dict[str, str]:
        """Headers merged by case-insensitive name, multiple values comma-joined."""
        merged: Dict[str, Tuple[str, List[str]]] = {}
        for name, value in self._headers:
            key = name.lower()
            if key not in merged:
                merged[key] = (name, [])
            merged[key][1].append(value)
        return {name: ", ".join(values) for name, values in merged.values()}

    def header_values(self, name: str) -> List[str]:
        return [v for n, v in self._headers if n.lower() == name.lower()]

    def encode_url(self) -> str:
        url = self.base_url + self._path
        if self._params:
            url += "?" + urlencode(self._params)
        return url

    def http_request(self) -> Dict[str, Any]:
        """Render keyword arguments for ``requests.Session.request``.

        Raises:
            MarshalError: If marshaling the body failed earlier in the chain.
        """
        if self.error is not None:
            raise self.error
        body = self._body
        if body is not None and not isinstance(body, bytes):
            # Streams are consumed by the first send; keep the bytes for retries.
            body = self._body = body.read()
        return {
            "method": self.method,
            "url": self.encode_url(),
            "headers": self.headers(),
            "data": body,
        }
