# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB service layer with optimistic concurrency and connection pooling.
"""

import os
import logging
from typing import List, Dict, Optional, Any, Tuple
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import (
    ConnectionFailure,
    ServerSelectionTimeoutError,
    DuplicateKeyError
)
from bson import ObjectId
from bson.errors import InvalidId

logger = logging.getLogger(__name__)

Sort = List[Tuple[str, int]]


def with_version_bump(update: Dict) -> Dict:
    """
    Add a ``version`` increment to an update operator document.

    Raw operator writes move the version so a snapshot read before them can
    no longer pass ``replace_if_version``.
    """
    bumped = dict(update)
    bumped["$inc"] = {**update.get("$inc", {}), "version": 1}
    return bumped


class PaginationResult:
    """Result container for paginated queries."""

    def __init__(self, items: List[Dict], total: int, page: int, page_size: int):
        self.items = items
        self.total = total
        self.page = page
        self.page_size = page_size
        self.total_pages = (total + page_size - 1) // page_size
        self.has_next = page < self.total_pages
        self.has_prev = page > 1


def _normalize_id(document: Optional[Dict]) -> Optional[Dict]:
    """Expose ``_id`` as a string ``id`` for entity parsing and JSON."""
    if document is not None and "_id" in document:
        document["id"] = str(document.pop("_id"))
    return document


class MongoDBService:
    """MongoDB service with compare-and-update writes and connection pooling."""

    def __init__(self, connection_string: str = None, database_name: str = None):
        """Initialize MongoDB service with connection pooling."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/civic_tracker_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'civic_tracker_dev')
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.max_idle_time_ms = int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))

        logger.info(f"MongoDB service initialized for database: {self.database_name}")

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    minPoolSize=self.min_pool_size,
                    maxIdleTimeMS=self.max_idle_time_ms,
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    retryWrites=True,
                    retryReads=True,
                    tz_aware=True
                )
                # Test connection
                self._client.admin.command('ping')
                logger.info("MongoDB connection established successfully")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                raise

        return self._client

    @property
    def database(self) -> Database:
        """Get MongoDB database."""
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def get_collection(self, collection_name: str) -> Collection:
        """Get MongoDB collection."""
        return self.database[collection_name]

    def close_connection(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed")

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            result = self.client.admin.command('ping')
            server_info = self.client.server_info()

            return {
                'status': 'healthy',
                'ping': result.get('ok') == 1,
                'version': server_info.get('version'),
                'database': self.database_name,
                'connection_pool_size': self.max_pool_size
            }
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'error': str(e),
                'database': self.database_name
            }

    def _validate_object_id(self, doc_id: str) -> ObjectId:
        """Validate and convert string ID to ObjectId."""
        try:
            return ObjectId(doc_id)
        except (InvalidId, TypeError):
            raise ValueError(f"Invalid ObjectId format: {doc_id}")

    # CRUD operations

    def create(self, collection: str, document: Dict) -> str:
        """Insert a new document and return its id."""
        try:
            if "_id" not in document:
                document["_id"] = ObjectId()

            result = self.get_collection(collection).insert_one(document)

            logger.info(f"Created document in {collection}: {result.inserted_id}")
            return str(result.inserted_id)

        except DuplicateKeyError as e:
            logger.error(f"Duplicate key error in {collection}: {e}")
            raise ValueError("Document with this identifier already exists")
        except Exception as e:
            logger.error(f"Failed to create document in {collection}: {e}")
            raise

    def find_one(self, collection: str, doc_id: str) -> Optional[Dict]:
        """Find a single document by ID. Malformed IDs are treated as missing."""
        try:
            object_id = self._validate_object_id(doc_id)
        except ValueError as e:
            logger.debug(f"Invalid document ID {doc_id}: {e}")
            return None

        try:
            document = self.get_collection(collection).find_one({"_id": object_id})
            if document is None:
                logger.debug(f"Document {doc_id} not found in {collection}")
            return _normalize_id(document)

        except Exception as e:
            logger.error(f"Failed to find document {doc_id} in {collection}: {e}")
            raise

    def find_one_by(self, collection: str, query: Dict) -> Optional[Dict]:
        """Find the first document matching a query."""
        try:
            return _normalize_id(self.get_collection(collection).find_one(query))
        except Exception as e:
            logger.error(f"Failed to query {collection}: {e}")
            raise

    def find_many(self, collection: str, query: Dict = None, sort: Sort = None,
                  limit: int = 0) -> List[Dict]:
        """Find documents matching a query with optional sort and limit."""
        try:
            cursor = self.get_collection(collection).find(query or {})
            if sort:
                cursor = cursor.sort(sort)
            if limit:
                cursor = cursor.limit(limit)

            documents = [_normalize_id(doc) for doc in cursor]
            logger.debug(f"Found {len(documents)} documents in {collection}")
            return documents

        except Exception as e:
            logger.error(f"Failed to find documents in {collection}: {e}")
            raise

    def paginate(self, collection: str, query: Dict = None, page: int = 1, page_size: int = 20,
                 sort: Sort = None) -> PaginationResult:
        """Paginate documents with sorting and filtering."""
        try:
            query = query or {}
            collection_obj = self.get_collection(collection)
            skip = (page - 1) * page_size

            total = collection_obj.count_documents(query)

            cursor = collection_obj.find(query)
            cursor = cursor.sort(sort or [("createdAt", DESCENDING)]).skip(skip).limit(page_size)
            documents = [_normalize_id(doc) for doc in cursor]

            logger.debug(f"Paginated {len(documents)} documents from {collection} (page {page})")
            return PaginationResult(documents, total, page, page_size)

        except Exception as e:
            logger.error(f"Failed to paginate documents in {collection}: {e}")
            raise

    def count(self, collection: str, query: Dict = None) -> int:
        """Count documents matching a query."""
        try:
            count = self.get_collection(collection).count_documents(query or {})
            logger.debug(f"Counted {count} documents in {collection}")
            return count
        except Exception as e:
            logger.error(f"Failed to count documents in {collection}: {e}")
            raise

    def replace_if_version(self, collection: str, doc_id: str, document: Dict,
                           expected_version: int) -> bool:
        """
        Replace a document only if its stored version still matches.

        The replacement is written with ``version = expected_version + 1``.
        Returns False when another writer got there first.
        """
        try:
            object_id = self._validate_object_id(doc_id)
            replacement = {k: v for k, v in document.items() if k not in ("_id", "id")}
            replacement["version"] = expected_version + 1

            result = self.get_collection(collection).replace_one(
                {"_id": object_id, "version": expected_version},
                replacement
            )

            if result.matched_count == 0:
                logger.info(
                    f"Version conflict on {collection}/{doc_id}",
                    extra={"expected_version": expected_version}
                )
                return False

            logger.debug(f"Replaced document {doc_id} in {collection} at version {expected_version + 1}")
            return True

        except Exception as e:
            logger.error(f"Failed to replace document {doc_id} in {collection}: {e}")
            raise

    def update_one(self, collection: str, doc_id: str, update: Dict) -> bool:
        """Apply an atomic update operator document to one document by ID."""
        try:
            object_id = self._validate_object_id(doc_id)
            result = self.get_collection(collection).update_one({"_id": object_id}, with_version_bump(update))

            if result.matched_count == 0:
                logger.warning(f"No document matched for {doc_id} in {collection}")
                return False
            return True

        except Exception as e:
            logger.error(f"Failed to update document {doc_id} in {collection}: {e}")
            raise

    def update_many(self, collection: str, query: Dict, update: Dict) -> int:
        """Apply an atomic update operator document to all matching documents."""
        try:
            result = self.get_collection(collection).update_many(query, with_version_bump(update))
            logger.debug(f"Updated {result.modified_count} documents in {collection}")
            return result.modified_count
        except Exception as e:
            logger.error(f"Failed to update documents in {collection}: {e}")
            raise

    def delete_one(self, collection: str, doc_id: str) -> bool:
        """Delete a document by ID."""
        try:
            object_id = self._validate_object_id(doc_id)
            result = self.get_collection(collection).delete_one({"_id": object_id})

            if result.deleted_count > 0:
                logger.info(f"Deleted document {doc_id} in {collection}")
                return True
            logger.warning(f"No document deleted for {doc_id} in {collection}")
            return False

        except Exception as e:
            logger.error(f"Failed to delete document {doc_id} in {collection}: {e}")
            raise

    def delete_many(self, collection: str, query: Dict) -> int:
        """Delete all documents matching a query."""
        try:
            result = self.get_collection(collection).delete_many(query)
            logger.info(f"Deleted {result.deleted_count} documents in {collection}")
            return result.deleted_count
        except Exception as e:
            logger.error(f"Failed to delete documents in {collection}: {e}")
            raise

    # Index Management

    def create_indexes(self) -> None:
        """Create performance indexes for all collections."""
        try:
            logger.info("Creating MongoDB indexes...")

            # Issues indexes
            issues = self.get_collection("issues")
            issues.create_index([("status", ASCENDING), ("createdAt", DESCENDING)])
            issues.create_index([("location.region", ASCENDING), ("createdAt", DESCENDING)])
            issues.create_index([("location.isNationwide", ASCENDING)])
            issues.create_index([("votes.total", DESCENDING), ("createdAt", DESCENDING)])
            issues.create_index([("author", ASCENDING), ("createdAt", DESCENDING)])
            issues.create_index("subscribers")
            issues.create_index([("title", "text"), ("description", "text")])

            # Comments indexes
            comments = self.get_collection("comments")
            comments.create_index([("issue", ASCENDING), ("createdAt", ASCENDING)])
            comments.create_index([("author", ASCENDING), ("createdAt", DESCENDING)])
            comments.create_index("parentComment")

            # Users indexes
            users = self.get_collection("users")
            users.create_index("email", unique=True)
            users.create_index("identitySubject", unique=True)
            users.create_index([("lastActive", DESCENDING)])
            users.create_index([("trustScore", DESCENDING)])

            # Regions indexes
            regions = self.get_collection("regions")
            regions.create_index("code", unique=True)

            logger.info("MongoDB indexes created successfully")

        except Exception as e:
            logger.error(f"Failed to create MongoDB indexes: {e}")
            raise


# Singleton instance for application use
_mongodb_service: Optional[MongoDBService] = None


def get_mongodb_service() -> MongoDBService:
    """Get singleton MongoDB service instance."""
    global _mongodb_service
    if _mongodb_service is None:
        _mongodb_service = MongoDBService()
    return _mongodb_service


def close_mongodb_connection() -> None:
    """Close MongoDB connection (for cleanup)."""
    global _mongodb_service
    if _mongodb_service:
        _mongodb_service.close_connection()
        _mongodb_service = None
