"""Builders for batched document mutations.

A MutationBuilder collects an ordered list of mutation items and sends them
in one POST. ``patch()`` hands back a PatchBuilder scoped to the new patch
item; its ``end()`` returns to the parent so the chain can carry on::

    result = (
        client.mutate()
        .create({"_type": "post", "title": "Hello"})
        .patch("post-1").set("title", "Updated").inc("views", 1).end()
        .delete("post-2")
        .execute()
    )

Marshaling failures inside the chain do not raise right away. The first one
is kept and raised from ``execute()`` as a MarshalError; later ones are
dropped.
"""

import logging
import threading
from typing import TYPE_CHECKING, Any, List, Optional, Tuple, Union

from ..clients.errors import MarshalError
from ..clients.request import Request
from .api_types import Insert, MutateResult, MutationItem, MutationVisibility, Patch, marshal_json

if TYPE_CHECKING:
    from ..clients.sanity import SanityClient

logger = logging.getLogger(__name__)


class MutationBuilder:
    def __init__(self, client: "SanityClient"):
        self._client = client
        self.items: List[MutationItem] = []
        self.error: Optional[Exception] = None
        self.return_ids = False
        self.return_documents = True
        self.visibility = MutationVisibility.SYNC
        self.transaction_id = ""
        self._tag: Optional[str] = None

    def set_visibility(self, visibility: Union[MutationVisibility, str]) -> "MutationBuilder":
        self.visibility = MutationVisibility(visibility)
        return self

    def set_transaction_id(self, transaction_id: str) -> "MutationBuilder":
        self.transaction_id = transaction_id
        return self

    def set_return_ids(self, enable: bool) -> "MutationBuilder":
        self.return_ids = enable
        return self

    def set_return_documents(self, enable: bool) -> "MutationBuilder":
        self.return_documents = enable
        return self

    def tag(self, tag: str) -> "MutationBuilder":
        self._tag = tag
        return self

    def _set_error(self, err: Exception) -> None:
        if self.error is None:
            self.error = err

    def _marshal(self, value: Any) -> Tuple[Any, bool]:
        try:
            return marshal_json(value), True
        except MarshalError as e:
            self._set_error(e)
            return None, False

    def create(self, doc: Any) -> "MutationBuilder":
        data, ok = self._marshal(doc)
        if ok:
            self.items.append(MutationItem("create", data))
        return self

    def create_if_not_exists(self, doc: Any) -> "MutationBuilder":
        data, ok = self._marshal(doc)
        if ok:
            self.items.append(MutationItem("createIfNotExists", data))
        return self

    def create_or_replace(self, doc: Any) -> "MutationBuilder":
        data, ok = self._marshal(doc)
        if ok:
            self.items.append(MutationItem("createOrReplace", data))
        return self

    def delete(self, doc_id: str) -> "MutationBuilder":
        self.items.append(MutationItem("delete", doc_id))
        return self

    def patch(self, doc_id: str) -> "PatchBuilder":
        patch = Patch(id=doc_id)
        self.items.append(MutationItem("patch", patch))
        return PatchBuilder(self, patch)

    def build(self) -> Request:
        """Build the POST request.

        Raises:
            MarshalError: If any document in the chain failed to marshal.
        """
        if self.error is not None:
            raise MarshalError(f"mutation builder: {self.error}") from self.error

        config = self._client.config
        req = (
            self._client.new_api_request()
            .set_method("POST")
            .append_path("data/mutate", config.dataset)
            .param("returnIds", self.return_ids)
            .param("returnDocuments", self.return_documents)
            .param("visibility", self.visibility)
            .tag(self._tag, config.default_tag)
            .marshal_body({"mutations": [item.to_dict() for item in self.items]})
        )
        if self.transaction_id:
            req.param("transactionId", self.transaction_id)
        return req

    def execute(
        self,
        cancel: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> MutateResult:
        """Send the mutations.

        Raises:
            MarshalError: If a document could not be marshaled.
            RequestError: On API failure.
        """
        req = self.build()
        logger.debug("Sending %d mutation(s) to dataset %s", len(self.items), self._client.config.dataset)
        resp = self._client.do(req, cancel=cancel, deadline=deadline)
        return MutateResult.from_dict(resp)


class PatchBuilder:
    """Edits one patch item. Marshal errors are recorded on the parent builder."""

    def __init__(self, parent: MutationBuilder, patch: Patch):
        self._parent = parent
        self.patch = patch

    def if_revision_id(self, revision_id: str) -> "PatchBuilder":
        self.patch.if_revision_id = revision_id
        return self

    def query(self, query: str) -> "PatchBuilder":
        self.patch.query = query
        return self

    def set(self, path: str, value: Any) -> "PatchBuilder":
        data, ok = self._parent._marshal(value)
        if ok:
            self.patch.set[path] = data
        return self

    def set_if_missing(self, path: str, value: Any) -> "PatchBuilder":
        data, ok = self._parent._marshal(value)
        if ok:
            self.patch.set_if_missing[path] = data
        return self

    def diff_match_patch(self, path: str, patch_text: str) -> "PatchBuilder":
        self.patch.diff_match_patch[path] = patch_text
        return self

    def unset(self, *paths: str) -> "PatchBuilder":
        self.patch.unset.extend(paths)
        return self

    def inc(self, path: str, n: float) -> "PatchBuilder":
        self.patch.inc[path] = n
        return self

    def dec(self, path: str, n: float) -> "PatchBuilder":
        self.patch.dec[path] = n
        return self

    def _insert(self, items: Tuple[Any, ...], **anchor: str) -> "PatchBuilder":
        marshaled = []
        for item in items:
            data, ok = self._parent._marshal(item)
            if not ok:
                return self
            marshaled.append(data)
        self.patch.insert = Insert(items=marshaled, **anchor)
        return self

    def insert_before(self, path: str, *items: Any) -> "PatchBuilder":
        return self._insert(items, before=path)

    def insert_after(self, path: str, *items: Any) -> "PatchBuilder":
        return self._insert(items, after=path)

    def insert_replace(self, path: str, *items: Any) -> "PatchBuilder":
        return self._insert(items, replace=path)

    def end(self) -> MutationBuilder:
        return self._parent
