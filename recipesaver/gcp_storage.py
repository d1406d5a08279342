from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, List, Optional

from google.api_core import exceptions as gcloud_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from loguru import logger

from .errors import PersistenceError
from .storage import RemoteRecipeStore


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except (gcloud_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError, OSError) as exc:
        logger.opt(exception=exc).debug("Firestore {} failed", action)
        raise PersistenceError(f"Firestore {action} failed: {exc}") from exc


class FirestoreRecipeStorage(RemoteRecipeStore):
    """Remote recipe records kept in a Firestore collection.

    Each document is keyed by the recipe id and stores the record fields as
    given, with ingredients, instructions and tags already encoded as JSON
    text by the caller.
    """

    def __init__(
        self,
        *,
        project: Optional[str] = None,
        collection_name: str = "recipes",
        client: Any = None,
    ) -> None:
        self._project = project
        self._collection_name = collection_name
        self._firestore_client = client

    @classmethod
    def from_env(cls) -> "FirestoreRecipeStorage":
        """Build a storage instance from environment variables."""

        project = os.environ.get("GCP_PROJECT")
        collection_name = os.environ.get("RECIPES_COLLECTION", "recipes")
        return cls(project=project, collection_name=collection_name)

    @property
    def _collection(self):
        # The client is built on first use so that missing credentials turn
        # into a PersistenceError the store can recover from.
        if self._firestore_client is None:
            with _translate_errors("client setup"):
                self._firestore_client = firestore.Client(project=self._project)
        return self._firestore_client.collection(self._collection_name)

    def list_records(self, user_id: str) -> Iterable[dict]:
        query = self._collection.where(filter=FieldFilter("userId", "==", user_id)).order_by(
            "createdAt", direction=firestore.Query.DESCENDING
        )
        records: List[dict] = []
        with _translate_errors("list"):
            for doc in query.stream():
                records.append(self._doc_to_record(doc.id, doc.to_dict() or {}))
        return records

    def create_record(self, record: dict) -> dict:
        doc_ref = self._collection.document(record["id"])
        with _translate_errors("create"):
            doc_ref.set(record)
            snapshot = doc_ref.get()
        return self._doc_to_record(snapshot.id, snapshot.to_dict() or {})

    def update_record(self, recipe_id: str, fields: dict) -> dict:
        doc_ref = self._collection.document(recipe_id)
        with _translate_errors("update"):
            snapshot = doc_ref.get()
            if not snapshot.exists:
                raise KeyError(f"Recipe '{recipe_id}' does not exist.")

            doc_ref.update(fields)
            snapshot = doc_ref.get()
        return self._doc_to_record(snapshot.id, snapshot.to_dict() or {})

    def _doc_to_record(self, doc_id: str, data: dict) -> dict:
        record = dict(data)
        record["id"] = doc_id
        return record


__all__ = ["FirestoreRecipeStorage"]
