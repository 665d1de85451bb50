# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.
"""

import copy
import os
import re
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from bson.errors import InvalidId

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'
os.environ['MONGODB_DATABASE'] = 'civic_tracker_test'

from civic_tracker.models.entities import Issue, Location, User, Comment, Region
from civic_tracker.models.enums import UserRole
from civic_tracker.services.auth import AuthService, generate_rsa_key_pair
from civic_tracker.services.mongodb import PaginationResult, with_version_bump
from civic_tracker.services.redis import RedisService

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

_MISSING = object()


def _resolve(document: Dict[str, Any], path: str):
    value = document
    for part in path.split('.'):
        if isinstance(value, dict) and part in value:
            value = value[part]
        else:
            return _MISSING
    return value


def _matches_condition(value, condition) -> bool:
    if isinstance(condition, dict) and any(key.startswith('$') for key in condition):
        for operator, operand in condition.items():
            if operator == '$gte':
                if value is _MISSING or value is None or not value >= operand:
                    return False
            elif operator == '$ne':
                if value == operand:
                    return False
            elif operator == '$in':
                candidates = value if isinstance(value, list) else [value]
                if not any(candidate in operand for candidate in candidates):
                    return False
            elif operator == '$regex':
                flags = re.IGNORECASE if 'i' in condition.get('$options', '') else 0
                if not isinstance(value, str) or not re.search(operand, value, flags):
                    return False
            elif operator == '$options':
                continue
            else:
                raise NotImplementedError(operator)
        return True

    if isinstance(value, list) and not isinstance(condition, list):
        return condition in value
    return value == condition


def _values_at(document: Dict[str, Any], path: str) -> list:
    """Values reachable at a dotted path, descending into arrays of sub-documents."""
    values = [document]
    for part in path.split('.'):
        found = []
        for value in values:
            if isinstance(value, dict) and part in value:
                found.append(value[part])
            elif isinstance(value, list):
                found.extend(item[part] for item in value if isinstance(item, dict) and part in item)
        values = found
    return values


def matches(document: Dict[str, Any], query: Optional[Dict[str, Any]]) -> bool:
    """Evaluate the subset of MongoDB query syntax the services use."""
    for key, condition in (query or {}).items():
        if key == '$or':
            if not any(matches(document, clause) for clause in condition):
                return False
            continue

        values = _values_at(document, key) or [_MISSING]
        if not any(_matches_condition(value, condition) for value in values):
            return False
    return True


def _pull_matches(item, criterion) -> bool:
    if isinstance(criterion, dict) and '$in' in criterion:
        return item in criterion['$in']
    if isinstance(criterion, dict):
        return isinstance(item, dict) and all(item.get(k) == v for k, v in criterion.items())
    return item == criterion


def apply_update(document: Dict[str, Any], update: Dict[str, Any]) -> None:
    for operator, fields in update.items():
        for field, value in fields.items():
            if operator == '$set':
                document[field] = copy.deepcopy(value)
            elif operator == '$addToSet':
                items = document.setdefault(field, [])
                if value not in items:
                    items.append(copy.deepcopy(value))
            elif operator == '$pull':
                document[field] = [
                    item for item in document.get(field, []) if not _pull_matches(item, value)
                ]
            elif operator == '$inc':
                document[field] = document.get(field, 0) + value
            else:
                raise NotImplementedError(operator)


def _sort_key(value):
    return (value is _MISSING or value is None, value if value not in (_MISSING, None) else 0)


class InMemoryMongo:
    """
    Dictionary-backed stand-in for MongoDBService.

    Implements the methods the services call with the same return types,
    including the version check of ``replace_if_version``.
    """

    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)

    @staticmethod
    def _key(doc_id) -> Optional[str]:
        try:
            return str(ObjectId(doc_id))
        except (InvalidId, TypeError):
            return None

    @staticmethod
    def _export(key: str, document: Dict[str, Any]) -> Dict[str, Any]:
        exported = copy.deepcopy(document)
        exported['id'] = key
        return exported

    def _select(self, collection: str, query) -> List[tuple]:
        return [
            (key, doc) for key, doc in self.collections[collection].items() if matches(doc, query)
        ]

    def create(self, collection: str, document: Dict) -> str:
        document = copy.deepcopy(document)
        key = str(document.pop('_id', ObjectId()))
        if key in self.collections[collection]:
            raise ValueError("Document with this identifier already exists")
        self.collections[collection][key] = document
        return key

    def find_one(self, collection: str, doc_id: str) -> Optional[Dict]:
        key = self._key(doc_id)
        document = self.collections[collection].get(key) if key else None
        return self._export(key, document) if document is not None else None

    def find_one_by(self, collection: str, query: Dict) -> Optional[Dict]:
        selected = self._select(collection, query)
        return self._export(*selected[0]) if selected else None

    def find_many(self, collection: str, query: Dict = None, sort=None, limit: int = 0) -> List[Dict]:
        selected = self._select(collection, query)
        for field, direction in reversed(sort or []):
            selected.sort(key=lambda item: _sort_key(_resolve(item[1], field)), reverse=direction < 0)
        if limit:
            selected = selected[:limit]
        return [self._export(key, doc) for key, doc in selected]

    def paginate(self, collection: str, query: Dict = None, page: int = 1, page_size: int = 20,
                 sort=None) -> PaginationResult:
        documents = self.find_many(collection, query, sort or [("createdAt", -1)])
        start = (page - 1) * page_size
        return PaginationResult(documents[start:start + page_size], len(documents), page, page_size)

    def count(self, collection: str, query: Dict = None) -> int:
        return len(self._select(collection, query))

    def replace_if_version(self, collection: str, doc_id: str, document: Dict,
                           expected_version: int) -> bool:
        key = self._key(doc_id)
        current = self.collections[collection].get(key)
        if current is None or current.get('version') != expected_version:
            return False
        replacement = {k: copy.deepcopy(v) for k, v in document.items() if k not in ('_id', 'id')}
        replacement['version'] = expected_version + 1
        self.collections[collection][key] = replacement
        return True

    def update_one(self, collection: str, doc_id: str, update: Dict) -> bool:
        key = self._key(doc_id)
        document = self.collections[collection].get(key)
        if document is None:
            return False
        apply_update(document, with_version_bump(update))
        return True

    def update_many(self, collection: str, query: Dict, update: Dict) -> int:
        selected = self._select(collection, query)
        for _, document in selected:
            apply_update(document, with_version_bump(update))
        return len(selected)

    def delete_one(self, collection: str, doc_id: str) -> bool:
        key = self._key(doc_id)
        return self.collections[collection].pop(key, None) is not None

    def delete_many(self, collection: str, query: Dict) -> int:
        selected = self._select(collection, query)
        for key, _ in selected:
            del self.collections[collection][key]
        return len(selected)

    def health_check(self) -> Dict[str, Any]:
        return {'status': 'healthy', 'database': 'civic_tracker_test'}

    # Test helpers

    def insert_entity(self, collection: str, entity) -> None:
        self.create(collection, entity.to_document())

    def raw(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        return self.collections[collection].get(str(doc_id))


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def store():
    return InMemoryMongo()


@pytest.fixture
def make_user(now):
    """Factory for users; email and phone verified unless told otherwise."""
    def _make_user(role: UserRole = UserRole.USER, verified: bool = True, **overrides) -> User:
        data = {
            "identity_subject": f"idp|{ObjectId()}",
            "first_name": "Ana",
            "last_name": "Silva",
            "email": f"user{ObjectId()}@example.com",
            "role": role,
            "is_email_verified": verified,
            "is_phone_verified": verified,
            "created_at": now,
            "updated_at": now,
            "last_active": now,
        }
        data.update(overrides)
        return User(**data)
    return _make_user


@pytest.fixture
def citizen(make_user):
    return make_user(first_name="Carla", last_name="Mendes")


@pytest.fixture
def unverified_user(make_user):
    return make_user(verified=False, first_name="Rui", last_name="Costa")


@pytest.fixture
def official(make_user):
    return make_user(role=UserRole.OFFICIAL, first_name="Olga", last_name="Pires")


@pytest.fixture
def moderator(make_user):
    return make_user(role=UserRole.MODERATOR, first_name="Mario", last_name="Lopes")


@pytest.fixture
def admin(make_user):
    return make_user(role=UserRole.ADMIN, first_name="Alice", last_name="Ramos")


@pytest.fixture
def region(now):
    return Region(name="Lisboa", code="LIS", created_at=now, updated_at=now)


@pytest.fixture
def make_issue(now, region):
    """Factory for issues in the default region."""
    def _make_issue(author: User, **overrides) -> Issue:
        data = {
            "title": "Broken streetlight on Rua Augusta",
            "description": "The streetlight in front of number 12 has been out for two weeks.",
            "location": Location(region_id=region.id),
            "author_id": author.id,
            "created_at": now,
            "updated_at": now,
        }
        data.update(overrides)
        return Issue(**data)
    return _make_issue


@pytest.fixture
def issue(make_issue, citizen):
    return make_issue(citizen)


@pytest.fixture
def make_comment(now):
    def _make_comment(issue: Issue, author: User, **overrides) -> Comment:
        data = {
            "content": "Same problem near the corner.",
            "author_id": author.id,
            "issue_id": issue.id,
            "created_at": now,
            "updated_at": now,
        }
        data.update(overrides)
        return Comment(**data)
    return _make_comment


@pytest.fixture
def populated_store(store, region, citizen, unverified_user, official, moderator, admin):
    """Store holding a region and one user of each kind."""
    store.insert_entity("regions", region)
    for user in (citizen, unverified_user, official, moderator, admin):
        store.insert_entity("users", user)
    return store


@pytest.fixture(scope="session")
def jwt_keys():
    return generate_rsa_key_pair()


@pytest.fixture
def auth_service(jwt_keys):
    private_key, public_key = jwt_keys
    return AuthService(private_key, public_key)


@pytest.fixture
def redis_service():
    redis = MagicMock(spec=RedisService)
    redis.is_token_blocked.return_value = False
    redis.add_to_blocklist.return_value = True
    redis.health_check.return_value = {"status": "healthy"}
    return redis


@pytest.fixture
def identity_provider():
    return MagicMock()


@pytest.fixture
def app(populated_store, redis_service, auth_service, identity_provider):
    """Application wired to the in-memory store and mocked externals."""
    from civic_tracker.app import create_app

    application = create_app(
        config_overrides={
            'TESTING': True,
            'ENVIRONMENT': 'test',
            'OTEL_ENABLED': False,
            'BASE_URL': 'http://testserver'
        },
        mongodb_service=populated_store,
        redis_service=redis_service,
        auth_service=auth_service,
        identity_provider=identity_provider
    )
    return application


@pytest.fixture
def client(app):
    """Create test client."""
    with app.test_client() as client:
        yield client


@pytest.fixture
def auth_headers(auth_service):
    """Build Authorization headers for a user."""
    def _auth_headers(user: User) -> Dict[str, str]:
        tokens = auth_service.generate_tokens(user)
        return {
            'Authorization': f"Bearer {tokens['access_token']}",
            'Content-Type': 'application/json'
        }
    return _auth_headers
