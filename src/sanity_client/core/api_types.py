"""Wire types for the Sanity data API.

These mirror the JSON documents exchanged with the query, mutate and doc
endpoints. Builders fill them in; ``to_dict()`` renders the request side and
``from_dict()`` reads the response side.
"""

import dataclasses
import datetime
import enum
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

from ..clients.errors import MarshalError

T = TypeVar("T")


class MutationVisibility(str, enum.Enum):
    SYNC = "sync"
    ASYNC = "async"
    DEFERRED = "deferred"


def _encode_default(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(value: Any) -> str:
    """Encode a value as compact JSON, raising TypeError/ValueError on failure."""
    return json.dumps(value, default=_encode_default, separators=(",", ":"), allow_nan=False)


def marshal_json(value: Any) -> Any:
    """Snapshot a caller value as plain JSON data.

    Bytes are taken to be raw JSON. Everything else goes through ``dumps``, so
    later changes to the caller's object do not leak into a built request.

    Raises:
        MarshalError: If the value cannot be represented as JSON.
    """
    try:
        if isinstance(value, (bytes, bytearray)):
            return json.loads(value)
        return json.loads(dumps(value))
    except (TypeError, ValueError) as e:
        raise MarshalError(f"marshaling value of type {type(value).__name__} to JSON: {e}") from e


def decode_into(value: Any, into: Optional[Callable[..., T]] = None) -> Optional[T]:
    """Convert decoded JSON into the caller's destination type.

    ``None`` yields the destination's zero value (``into()``), never an error.
    Dataclass destinations are built from mapping values by keyword.
    """
    if value is None:
        return into() if into is not None else None
    if into is None:
        return value
    if isinstance(into, type) and dataclasses.is_dataclass(into) and isinstance(value, dict):
        return into(**value)
    return into(value)


@dataclass
class Insert:
    items: List[Any]
    before: str = ""
    after: str = ""
    replace: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for key in ("before", "after", "replace"):
            anchor = getattr(self, key)
            if anchor:
                data[key] = anchor
        data["items"] = list(self.items)
        return data


@dataclass
class Patch:
    id: str
    if_revision_id: str = ""
    query: str = ""
    set: Dict[str, Any] = field(default_factory=dict)
    set_if_missing: Dict[str, Any] = field(default_factory=dict)
    diff_match_patch: Dict[str, str] = field(default_factory=dict)
    unset: List[str] = field(default_factory=list)
    insert: Optional[Insert] = None
    inc: Dict[str, float] = field(default_factory=dict)
    dec: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id}
        if self.if_revision_id:
            data["ifRevisionID"] = self.if_revision_id
        if self.query:
            data["query"] = self.query
        if self.set:
            data["set"] = dict(self.set)
        if self.set_if_missing:
            data["setIfMissing"] = dict(self.set_if_missing)
        if self.diff_match_patch:
            data["diffMatchPatch"] = dict(self.diff_match_patch)
        if self.unset:
            data["unset"] = list(self.unset)
        if self.insert is not None:
            data["insert"] = self.insert.to_dict()
        if self.inc:
            data["inc"] = dict(self.inc)
        if self.dec:
            data["dec"] = dict(self.dec)
        return data


@dataclass
class MutationItem:
    """One mutation in a batch.

    ``kind`` is the wire key: create, createIfNotExists, createOrReplace,
    delete (value is the document ID) or patch (value is a Patch).
    """

    kind: str
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        if self.kind == "patch":
            return {"patch": self.value.to_dict()}
        if self.kind == "delete":
            return {"delete": {"id": self.value}}
        return {self.kind: self.value}


@dataclass
class MutateResultItem:
    id: str = ""
    operation: str = ""
    document: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MutateResultItem":
        return cls(
            id=data.get("id") or "",
            operation=data.get("operation") or "",
            document=data.get("document"),
        )

    def unmarshal(self, into: Optional[Type[T]] = None) -> Optional[T]:
        """Decode the returned document into ``into``."""
        return decode_into(self.document, into)


@dataclass
class MutateResult:
    transaction_id: str = ""
    results: List[MutateResultItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MutateResult":
        return cls(
            transaction_id=data.get("transactionId") or "",
            results=[MutateResultItem.from_dict(item) for item in data.get("results") or []],
        )


@dataclass
class QueryResult:
    """Result of a query API call.

    Attributes:
        time: Server-side time taken by the query.
        result: Decoded JSON result, or None when the server reported none.
    """

    time: datetime.timedelta
    result: Optional[Any] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueryResult":
        return cls(
            time=datetime.timedelta(milliseconds=float(data.get("ms") or 0)),
            result=data.get("result"),
        )

    def unmarshal(self, into: Optional[Type[T]] = None) -> Optional[T]:
        """Decode the result into ``into``; an absent result gives ``into()``."""
        return decode_into(self.result, into)


@dataclass
class GetDocumentsResponse:
    documents: List[Dict[str, Any]] = field(default_factory=list)
    omitted: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GetDocumentsResponse":
        return cls(
            documents=list(data.get("documents") or []),
            omitted=list(data.get("omitted") or []),
        )
