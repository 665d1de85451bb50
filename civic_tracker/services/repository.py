# SPDX-License-Identifier: Apache-2.0

"""
Entity repository over MongoDBService.

Primary-entity writes go through ``mutate``: load the current document,
apply a domain function, and replace the document only if nobody else
changed it in between. Lost races are retried on a fresh snapshot.
"""

import os
import logging
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, Type, TypeVar

from ..domain.errors import ConcurrentUpdateError, NotFoundError
from ..models.base import BaseEntity
from .mongodb import MongoDBService, PaginationResult

logger = logging.getLogger(__name__)

E = TypeVar('E', bound=BaseEntity)

DEFAULT_WRITE_RETRY_ATTEMPTS = 5


class EntityRepository(Generic[E]):
    """Typed access to one collection with compare-and-update writes."""

    def __init__(self, db: MongoDBService, collection: str, entity_cls: Type[E],
                 entity_name: str, retry_attempts: Optional[int] = None):
        self.db = db
        self.collection = collection
        self.entity_cls = entity_cls
        self.entity_name = entity_name
        self.retry_attempts = retry_attempts or int(
            os.getenv('WRITE_RETRY_ATTEMPTS', str(DEFAULT_WRITE_RETRY_ATTEMPTS))
        )

    def _parse(self, document: Optional[Dict[str, Any]]) -> Optional[E]:
        if document is None:
            return None
        return self.entity_cls.from_document(document)

    def find(self, entity_id: str) -> Optional[E]:
        return self._parse(self.db.find_one(self.collection, entity_id))

    def get(self, entity_id: str) -> E:
        """Load an entity or raise NotFoundError."""
        entity = self.find(entity_id)
        if entity is None:
            raise NotFoundError(self.entity_name, entity_id)
        return entity

    def find_one_by(self, query: Dict[str, Any]) -> Optional[E]:
        return self._parse(self.db.find_one_by(self.collection, query))

    def find_many(self, query: Dict[str, Any] = None, sort=None, limit: int = 0) -> List[E]:
        return [self._parse(doc) for doc in self.db.find_many(self.collection, query, sort, limit)]

    def paginate(self, query: Dict[str, Any], page: int, page_size: int,
                 sort=None) -> Tuple[List[E], PaginationResult]:
        result = self.db.paginate(self.collection, query, page, page_size, sort)
        return [self._parse(doc) for doc in result.items], result

    def count(self, query: Dict[str, Any] = None) -> int:
        return self.db.count(self.collection, query)

    def insert(self, entity: E) -> E:
        self.db.create(self.collection, entity.to_document())
        return entity

    def delete(self, entity_id: str) -> bool:
        return self.db.delete_one(self.collection, entity_id)

    def mutate(self, entity_id: str, apply: Callable[[E], Any]) -> Tuple[E, Any]:
        """
        Apply ``apply`` to the current entity and persist it atomically.

        ``apply`` receives a fresh snapshot on every attempt and may raise a
        domain error to abort without writing anything.

        Returns:
            (updated entity, value returned by ``apply``)

        Raises:
            NotFoundError: entity does not exist
            ConcurrentUpdateError: every attempt lost to a concurrent writer
        """
        for attempt in range(1, self.retry_attempts + 1):
            entity = self.get(entity_id)
            expected_version = entity.version
            result = apply(entity)

            if self.db.replace_if_version(self.collection, entity_id, entity.to_document(), expected_version):
                entity.version = expected_version + 1
                return entity, result

            logger.info(
                "Retrying write after version conflict",
                extra={
                    "collection": self.collection,
                    "entity_id": entity_id,
                    "attempt": attempt
                }
            )

        raise ConcurrentUpdateError(
            f"{self.entity_name.capitalize()} {entity_id} was modified concurrently; please retry"
        )
