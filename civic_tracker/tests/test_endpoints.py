# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
End-to-end tests for the HTTP API using the Flask test client.
"""

import json
import pytest

from civic_tracker.services.auth import AuthenticationError
from civic_tracker.services.identity import IdentityClaims


def body_of(response):
    return json.loads(response.data)


@pytest.fixture
def stored_issue(populated_store, issue):
    populated_store.insert_entity("issues", issue)
    return issue


class TestAuthEndpoints:
    """Registration, login, refresh and logout."""

    def test_register(self, client, identity_provider, region):
        identity_provider.verify.return_value = IdentityClaims(
            subject="idp|fresh", email="fresh@example.com", email_verified=True
        )

        response = client.post('/api/auth/register', json={
            "identityToken": "id-token",
            "firstName": "Fresh",
            "lastName": "User",
            "regionId": region.id
        })

        data = body_of(response)
        assert response.status_code == 201
        assert data['email'] == "fresh@example.com"
        assert data['role'] == "user"
        assert data['isVerified'] is False
        assert data['tokens']['token_type'] == "Bearer"
        assert 'identitySubject' not in data

    def test_register_existing_identity(self, client, identity_provider, citizen):
        identity_provider.verify.return_value = IdentityClaims(subject=citizen.identity_subject, email=citizen.email)

        response = client.post('/api/auth/register', json={
            "identityToken": "id-token", "firstName": "Carla", "lastName": "Mendes"
        })

        assert response.status_code == 409

    def test_register_rejected_identity_token(self, client, identity_provider):
        identity_provider.verify.side_effect = AuthenticationError("Identity token has expired")

        response = client.post('/api/auth/register', json={
            "identityToken": "expired", "firstName": "A", "lastName": "B"
        })

        assert response.status_code == 401

    def test_login(self, client, identity_provider, citizen):
        identity_provider.verify.return_value = IdentityClaims(subject=citizen.identity_subject)

        response = client.post('/api/auth/login', json={"identityToken": "id-token"})

        assert response.status_code == 200
        assert body_of(response)['id'] == citizen.id

    def test_login_unregistered(self, client, identity_provider):
        identity_provider.verify.return_value = IdentityClaims(subject="idp|nobody")

        response = client.post('/api/auth/login', json={"identityToken": "id-token"})

        assert response.status_code == 401

    def test_refresh(self, client, auth_service, citizen):
        tokens = auth_service.generate_tokens(citizen)

        response = client.post('/api/auth/refresh', json={"refreshToken": tokens['refresh_token']})

        assert response.status_code == 200
        assert auth_service.validate_token(body_of(response)['access_token'])['sub'] == citizen.id

    def test_refresh_with_access_token_fails(self, client, auth_service, citizen):
        tokens = auth_service.generate_tokens(citizen)

        response = client.post('/api/auth/refresh', json={"refreshToken": tokens['access_token']})

        assert response.status_code == 401

    def test_logout_blocklists_tokens(self, client, auth_service, redis_service, citizen):
        tokens = auth_service.generate_tokens(citizen)
        headers = {'Authorization': f"Bearer {tokens['access_token']}"}

        response = client.post('/api/auth/logout', headers=headers, json={"refreshToken": tokens['refresh_token']})

        assert response.status_code == 200
        assert redis_service.add_to_blocklist.call_count == 2

    def test_me_lists_capabilities(self, client, auth_headers, moderator):
        response = client.get('/api/auth/me', headers=auth_headers(moderator))

        assert body_of(response)['capabilities'] == [
            "comment:moderate",
            "issue:edit_any",
            "issue:override_status",
        ]


class TestIssueEndpoints:
    """Issue lifecycle over HTTP."""

    def test_create_issue(self, client, auth_headers, citizen, region):
        response = client.post('/api/issues', headers=auth_headers(citizen), json={
            "title": "Broken traffic light",
            "description": "The pedestrian light at the crossing never turns green.",
            "location": {"regionId": region.id}
        })

        data = body_of(response)
        assert response.status_code == 201
        assert response.headers['Location'] == f"/api/issues/{data['id']}"
        assert data['status'] == "Pending"
        assert data['location']['region'] == region.id
        assert 'edit' in data['_links']

    def test_create_issue_requires_auth(self, client, region):
        response = client.post('/api/issues', json={
            "title": "Broken traffic light",
            "description": "The pedestrian light at the crossing never turns green.",
            "location": {"regionId": region.id}
        })

        assert response.status_code == 401

    def test_unverified_user_cannot_report(self, client, auth_headers, unverified_user, region):
        response = client.post('/api/issues', headers=auth_headers(unverified_user), json={
            "title": "Broken traffic light",
            "description": "The pedestrian light at the crossing never turns green.",
            "location": {"regionId": region.id}
        })

        assert response.status_code == 403

    def test_create_issue_validation(self, client, auth_headers, citizen):
        response = client.post('/api/issues', headers=auth_headers(citizen), json={
            "title": "Bad", "description": "short", "location": {}
        })

        assert response.status_code == 400
        fields = {error['field'] for error in body_of(response)['errors']}
        assert {'title', 'description'} <= fields

    def test_list_and_filter(self, client, stored_issue):
        listing = body_of(client.get('/api/issues'))
        filtered = body_of(client.get('/api/issues?status=Resolved'))

        assert listing['total'] == 1
        assert listing['_embedded']['items'][0]['id'] == stored_issue.id
        assert filtered['total'] == 0

    def test_search(self, client, stored_issue):
        assert body_of(client.get('/api/issues?search=streetlight'))['total'] == 1
        assert body_of(client.get('/api/issues?search=pothole'))['total'] == 0

    def test_get_missing_issue(self, client):
        response = client.get('/api/issues/5f0000000000000000000000')

        assert response.status_code == 404
        assert response.headers['Content-Type'] == 'application/problem+json'

    def test_vote_and_switch(self, client, auth_headers, stored_issue, official):
        headers = auth_headers(official)

        first = body_of(client.post(f'/api/issues/{stored_issue.id}/vote', headers=headers,
                                    json={"priority": "Urgent"}))
        second = body_of(client.post(f'/api/issues/{stored_issue.id}/vote', headers=headers,
                                     json={"priority": "Important"}))

        assert first['vote'] == {"action": "created", "priority": "Urgent", "previousPriority": None}
        assert second['vote']['previousPriority'] == "Urgent"
        assert second['votes']['Important'] == 1
        assert second['votes']['Urgent'] == 0
        assert second['votes']['total'] == 1

    def test_duplicate_vote(self, client, auth_headers, stored_issue, official):
        headers = auth_headers(official)
        client.post(f'/api/issues/{stored_issue.id}/vote', headers=headers, json={"priority": "Urgent"})

        response = client.post(f'/api/issues/{stored_issue.id}/vote', headers=headers, json={"priority": "Urgent"})

        assert response.status_code == 409
        assert body_of(response)['type'].endswith('/duplicate-vote')

    def test_invalid_priority(self, client, auth_headers, stored_issue, official):
        response = client.post(f'/api/issues/{stored_issue.id}/vote', headers=auth_headers(official),
                               json={"priority": "Critical"})

        assert response.status_code == 400

    def test_author_cannot_change_status(self, client, auth_headers, stored_issue, citizen):
        response = client.put(f'/api/issues/{stored_issue.id}', headers=auth_headers(citizen),
                              json={"status": "Resolved"})

        assert response.status_code == 403

    def test_official_resolution_flow(self, client, auth_headers, stored_issue, official):
        headers = auth_headers(official)
        base = f'/api/issues/{stored_issue.id}'

        added = client.post(f'{base}/resolution-step', headers=headers, json={"description": "Inspect"})
        client.post(f'{base}/resolution-step', headers=headers, json={"description": "Repair"})
        client.post(f'{base}/resolution-step/0/complete', headers=headers)
        done = body_of(client.post(f'{base}/resolution-step/1/complete', headers=headers))

        assert added.status_code == 201
        assert body_of(added)['status'] == "In Progress"
        assert done['status'] == "Resolved"
        assert [step['status'] for step in done['resolutionSteps']] == ["completed", "completed"]

    def test_citizen_cannot_add_resolution_step(self, client, auth_headers, stored_issue, citizen):
        response = client.post(f'/api/issues/{stored_issue.id}/resolution-step',
                               headers=auth_headers(citizen), json={"description": "I fixed it"})

        assert response.status_code == 403

    def test_subscribe_toggle(self, client, auth_headers, stored_issue, official):
        headers = auth_headers(official)

        first = body_of(client.post(f'/api/issues/{stored_issue.id}/subscribe', headers=headers))
        second = body_of(client.post(f'/api/issues/{stored_issue.id}/subscribe', headers=headers))

        assert first['subscribed'] is True
        assert second['subscribed'] is False

    def test_delete_issue(self, client, auth_headers, stored_issue, citizen, official):
        forbidden = client.delete(f'/api/issues/{stored_issue.id}', headers=auth_headers(official))
        deleted = client.delete(f'/api/issues/{stored_issue.id}', headers=auth_headers(citizen))

        assert forbidden.status_code == 403
        assert deleted.status_code == 204
        assert client.get(f'/api/issues/{stored_issue.id}').status_code == 404

    def test_trending_and_tackled(self, client, stored_issue):
        assert body_of(client.get('/api/issues/trending?limit=5'))['count'] >= 0
        assert body_of(client.get('/api/issues/tackled'))['count'] == 0
        assert client.get('/api/issues/trending?limit=500').status_code == 400


class TestCommentEndpoints:
    """Comment threads over HTTP."""

    def test_comment_and_reply(self, client, auth_headers, stored_issue, citizen, official):
        comment = body_of(client.post('/api/comments', headers=auth_headers(citizen), json={
            "issueId": stored_issue.id, "content": "Still dark every night."
        }))
        reply = client.post('/api/comments', headers=auth_headers(official), json={
            "issueId": stored_issue.id, "content": "Crew booked.", "parentCommentId": comment['id']
        })

        assert comment['isOfficial'] is False
        assert reply.status_code == 201
        assert body_of(reply)['isOfficial'] is True
        assert body_of(reply)['isReply'] is True

        thread = body_of(client.get(f'/api/comments/issue/{stored_issue.id}'))
        assert thread['count'] == 2

    def test_like_toggle(self, client, auth_headers, stored_issue, citizen, official):
        created = body_of(client.post('/api/comments', headers=auth_headers(official), json={
            "issueId": stored_issue.id, "content": "Crew booked."
        }))

        liked = body_of(client.post(f"/api/comments/{created['id']}/like", headers=auth_headers(citizen)))

        assert liked['liked'] is True
        assert liked['likeCount'] == 1

    def test_moderator_edits_and_deletes(self, client, auth_headers, stored_issue, citizen, moderator, official):
        created = body_of(client.post('/api/comments', headers=auth_headers(citizen), json={
            "issueId": stored_issue.id, "content": "Rude remark"
        }))
        path = f"/api/comments/{created['id']}"

        assert client.put(path, headers=auth_headers(official), json={"content": "x"}).status_code == 403
        edited = client.put(path, headers=auth_headers(moderator), json={"content": "[removed]"})
        assert body_of(edited)['content'] == "[removed]"
        assert client.delete(path, headers=auth_headers(moderator)).status_code == 204
        assert client.get(path).status_code == 404


class TestUserEndpoints:
    """Profiles and administrative changes over HTTP."""

    def test_profile(self, client, citizen):
        data = body_of(client.get(f'/api/users/{citizen.id}'))

        assert data['fullName'] == "Carla Mendes"
        assert data['statistics']['totalActivity'] == 0
        assert 0 <= data['trustScore'] <= 100

    def test_award_badge(self, client, auth_headers, citizen, admin):
        path = f'/api/users/{citizen.id}/badge'

        first = client.post(path, headers=auth_headers(admin), json={"badge": "Community Hero"})
        again = client.post(path, headers=auth_headers(admin), json={"badge": "Community Hero"})
        unknown = client.post(path, headers=auth_headers(admin), json={"badge": "Superstar"})
        forbidden = client.post(path, headers=auth_headers(citizen), json={"badge": "Issue Solver"})

        assert body_of(first)['badges'] == ["Community Hero"]
        assert again.status_code == 409
        assert unknown.status_code == 400
        assert forbidden.status_code == 403

    def test_role_change_applies_to_next_request(self, client, auth_headers, citizen, admin, stored_issue):
        headers = auth_headers(citizen)
        before = client.post(f'/api/issues/{stored_issue.id}/resolution-step', headers=headers,
                             json={"description": "Fixed"})

        changed = client.put(f'/api/users/{citizen.id}/role', headers=auth_headers(admin), json={"role": "official"})
        after = client.post(f'/api/issues/{stored_issue.id}/resolution-step', headers=headers,
                            json={"description": "Fixed"})

        assert before.status_code == 403
        assert body_of(changed)['role'] == "official"
        assert after.status_code == 201

    def test_verification(self, client, auth_headers, unverified_user, admin):
        response = client.put(f'/api/users/{unverified_user.id}/verification', headers=auth_headers(admin),
                              json={"isIdVerified": True})

        data = body_of(response)
        assert data['isVerified'] is True
        assert data['trustScore'] >= 25

    def test_user_issues_and_subscriptions(self, client, auth_headers, stored_issue, citizen, official):
        client.post(f'/api/issues/{stored_issue.id}/subscribe', headers=auth_headers(official))

        reported = body_of(client.get(f'/api/users/{citizen.id}/issues'))
        followed = body_of(client.get('/api/users/subscribed-issues', headers=auth_headers(official)))

        assert reported['total'] == 1
        assert followed['_embedded']['items'][0]['id'] == stored_issue.id

    def test_trending_users(self, client):
        response = client.get('/api/users/trending')

        assert response.status_code == 200
        assert 'items' in body_of(response)['_embedded']
