# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
HAL (Hypertext Application Language) response formatting utilities.
Implements HATEOAS Level-3 API responses with affordance links derived
from the acting user's role capabilities.
"""

from typing import Dict, List, Any, Optional
from urllib.parse import urljoin, urlencode
import math

from ..domain.permissions import Capability, capability_names, is_owner_or_capable
from ..models.base import BaseEntity
from ..models.entities import Comment, Issue, User
from ..models.responses import HalLink, ProblemDetail

PROBLEM_TYPE_BASE = "https://api.civic-tracker.org/problems"

# Fields never exposed in API responses
PRIVATE_USER_FIELDS = {"identity_subject"}


def entity_to_json(entity: BaseEntity, exclude: Optional[set] = None) -> Dict[str, Any]:
    """Serialize an entity to a JSON-safe dict with camelCase keys."""
    return entity.model_dump(mode="json", by_alias=True, exclude=exclude)


class HalLinkBuilder:
    """Builder for HAL links with proper URL construction."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/') + '/'

    def build_link(
        self,
        path: str,
        method: str = "GET",
        content_type: Optional[str] = None,
        title: Optional[str] = None,
        templated: bool = False
    ) -> HalLink:
        """Build a HAL link with proper URL construction."""
        href = urljoin(self.base_url, path.lstrip('/'))

        return HalLink(
            href=href,
            method=method,
            type=content_type,
            title=title,
            templated=templated
        )

    def build_self_link(self, resource_path: str) -> HalLink:
        """Build self link for a resource."""
        return self.build_link(resource_path, title="Self")

    def build_collection_link(self, collection_path: str) -> HalLink:
        """Build link to parent collection."""
        return self.build_link(collection_path, title="Collection")

    def build_action_link(
        self,
        resource_path: str,
        action: str,
        method: str = "POST",
        title: Optional[str] = None
    ) -> HalLink:
        """Build action link for a resource."""
        return self.build_link(
            f"{resource_path}/{action}",
            method=method,
            content_type="application/json",
            title=title or action.title()
        )


class PaginationLinkBuilder:
    """Builder for pagination links in HAL collections."""

    def __init__(self, base_url: str):
        self.link_builder = HalLinkBuilder(base_url)

    def _page_link(self, base_path: str, params: Dict[str, Any], page: int,
                   page_size: int, title: str) -> HalLink:
        query = urlencode({**params, 'page': page, 'limit': page_size})
        return self.link_builder.build_link(f"{base_path}?{query}", title=title)

    def build_pagination_links(
        self,
        base_path: str,
        current_page: int,
        total_pages: int,
        page_size: int,
        query_params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, HalLink]:
        """Build pagination links for a collection."""
        params = {k: v for k, v in (query_params or {}).items() if v is not None}
        links = {'self': self._page_link(base_path, params, current_page, page_size, "Current page")}

        if current_page > 1:
            links['first'] = self._page_link(base_path, params, 1, page_size, "First page")
            links['prev'] = self._page_link(base_path, params, current_page - 1, page_size, "Previous page")

        if current_page < total_pages:
            links['next'] = self._page_link(base_path, params, current_page + 1, page_size, "Next page")
            links['last'] = self._page_link(base_path, params, total_pages, page_size, "Last page")

        return links


class AffordanceLinkBuilder:
    """Builder for conditional affordance links based on capabilities and state."""

    def __init__(self, base_url: str):
        self.link_builder = HalLinkBuilder(base_url)

    def build_issue_affordances(self, issue: Issue, actor: Optional[User]) -> Dict[str, HalLink]:
        """Build conditional affordance links for issues."""
        base_path = f"/api/issues/{issue.id}"
        links = {
            'self': self.link_builder.build_self_link(base_path),
            'collection': self.link_builder.build_collection_link("/api/issues"),
            'comments': self.link_builder.build_link(
                f"/api/comments/issue/{issue.id}", title="Issue comments"
            ),
            'author': self.link_builder.build_link(f"/api/users/{issue.author_id}", title="Author"),
        }

        if actor is None:
            return links

        if actor.is_verified:
            links['vote'] = self.link_builder.build_action_link(base_path, "vote", title="Vote on issue")
            links['comment'] = self.link_builder.build_link(
                "/api/comments", method="POST", content_type="application/json", title="Comment on issue"
            )

        links['subscribe'] = self.link_builder.build_action_link(
            base_path, "subscribe",
            title="Unsubscribe" if issue.is_subscribed(actor.id) else "Subscribe"
        )

        if is_owner_or_capable(actor, issue.author_id, Capability.EDIT_ANY_ISSUE):
            links['edit'] = self.link_builder.build_link(
                base_path, method="PUT", content_type="application/json", title="Edit issue"
            )

        if is_owner_or_capable(actor, issue.author_id, Capability.DELETE_ANY_ISSUE):
            links['delete'] = self.link_builder.build_link(base_path, method="DELETE", title="Delete issue")

        if Capability.RESOLVE_ISSUE.value in capability_names(actor.role) and not issue.is_resolved:
            links['add_resolution_step'] = self.link_builder.build_action_link(
                base_path, "resolution-step", title="Add resolution step"
            )

        return links

    def build_comment_affordances(self, comment: Comment, actor: Optional[User]) -> Dict[str, HalLink]:
        """Build conditional affordance links for comments."""
        base_path = f"/api/comments/{comment.id}"
        links = {
            'self': self.link_builder.build_self_link(base_path),
            'issue': self.link_builder.build_link(f"/api/issues/{comment.issue_id}", title="Issue"),
            'author': self.link_builder.build_link(f"/api/users/{comment.author_id}", title="Author"),
        }

        if comment.parent_comment_id:
            links['parent'] = self.link_builder.build_link(
                f"/api/comments/{comment.parent_comment_id}", title="Parent comment"
            )

        if actor is None:
            return links

        links['like'] = self.link_builder.build_action_link(
            base_path, "like", title="Unlike" if actor.id in comment.likes else "Like"
        )

        if is_owner_or_capable(actor, comment.author_id, Capability.MODERATE_COMMENTS):
            links['edit'] = self.link_builder.build_link(
                base_path, method="PUT", content_type="application/json", title="Edit comment"
            )
            links['delete'] = self.link_builder.build_link(base_path, method="DELETE", title="Delete comment")

        return links

    def build_user_affordances(self, user: User, actor: Optional[User]) -> Dict[str, HalLink]:
        """Build conditional affordance links for users."""
        base_path = f"/api/users/{user.id}"
        links = {
            'self': self.link_builder.build_self_link(base_path),
            'issues': self.link_builder.build_link(f"{base_path}/issues", title="Reported issues"),
        }

        if actor is None:
            return links

        capabilities = capability_names(actor.role)

        if Capability.MANAGE_ROLES.value in capabilities:
            links['change_role'] = self.link_builder.build_action_link(
                base_path, "role", method="PUT", title="Change role"
            )

        if Capability.AWARD_BADGE.value in capabilities:
            links['award_badge'] = self.link_builder.build_action_link(
                base_path, "badge", title="Award badge"
            )

        if Capability.VERIFY_USER.value in capabilities:
            links['verify'] = self.link_builder.build_action_link(
                base_path, "verification", method="PUT", title="Update verification"
            )

        return links


class HalResponseBuilder:
    """Main HAL response builder with comprehensive formatting capabilities."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')
        self.link_builder = HalLinkBuilder(base_url)
        self.pagination_builder = PaginationLinkBuilder(base_url)
        self.affordance_builder = AffordanceLinkBuilder(base_url)

    @staticmethod
    def _dump_links(links: Dict[str, HalLink]) -> Dict[str, Any]:
        return {rel: link.model_dump(exclude_none=True) for rel, link in links.items()}

    def build_resource_response(self, data: Dict[str, Any], links: Dict[str, HalLink]) -> Dict[str, Any]:
        """Attach HAL links to a resource representation."""
        response = dict(data)
        response['_links'] = self._dump_links(links)
        return response

    def build_collection_response(
        self,
        items: List[Dict[str, Any]],
        total: int,
        page: int,
        page_size: int,
        collection_path: str,
        query_params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Build a HAL collection response with pagination links."""
        total_pages = math.ceil(total / page_size) if page_size > 0 else 1

        pagination_links = self.pagination_builder.build_pagination_links(
            collection_path,
            page,
            total_pages,
            page_size,
            query_params
        )

        return {
            'total': total,
            'page': page,
            'pageSize': page_size,
            'totalPages': total_pages,
            '_links': self._dump_links(pagination_links),
            '_embedded': {
                'items': items
            }
        }

    def build_list_response(self, items: List[Dict[str, Any]], path: str) -> Dict[str, Any]:
        """Build an unpaginated HAL collection."""
        return {
            'count': len(items),
            '_links': self._dump_links({'self': self.link_builder.build_self_link(path)}),
            '_embedded': {'items': items}
        }

    def build_error_response(
        self,
        error_type: str,
        title: str,
        status: int,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        """Build RFC 7807 compliant error response with HAL links."""
        problem = ProblemDetail(
            type=f"{PROBLEM_TYPE_BASE}/{error_type}",
            title=title,
            status=status,
            detail=detail,
            instance=instance,
            errors=validation_errors or None
        )
        error_response = problem.model_dump(exclude_none=True)

        links = {
            'help': self.link_builder.build_link(
                f"/docs/errors#{error_type}",
                title="Error documentation"
            )
        }

        if error_type == "validation-error":
            links['schema'] = self.link_builder.build_link(
                "/openapi/openapi.json",
                title="API schema"
            )
        elif error_type == "authentication-required":
            links['login'] = self.link_builder.build_link(
                "/api/auth/login",
                method="POST",
                content_type="application/json",
                title="Login"
            )
        elif error_type == "insufficient-permissions":
            links['me'] = self.link_builder.build_link(
                "/api/auth/me",
                title="Current user and capabilities"
            )

        error_response['_links'] = self._dump_links(links)
        return error_response


class HalFormatter:
    """High-level HAL formatter with convenience methods."""

    def __init__(self, base_url: str):
        self.builder = HalResponseBuilder(base_url)

    def format_issue(self, issue: Issue, actor: Optional[User] = None) -> Dict[str, Any]:
        """Format an issue with HAL links."""
        data = entity_to_json(issue)
        links = self.builder.affordance_builder.build_issue_affordances(issue, actor)
        return self.builder.build_resource_response(data, links)

    def format_issue_collection(
        self,
        issues: List[Issue],
        total: int,
        page: int,
        page_size: int,
        actor: Optional[User] = None,
        filters: Optional[Dict[str, Any]] = None,
        path: str = "/api/issues"
    ) -> Dict[str, Any]:
        """Format a page of issues with HAL links."""
        items = [self.format_issue(issue, actor) for issue in issues]
        return self.builder.build_collection_response(items, total, page, page_size, path, filters)

    def format_issue_list(self, issues: List[Issue], path: str, actor: Optional[User] = None) -> Dict[str, Any]:
        return self.builder.build_list_response([self.format_issue(i, actor) for i in issues], path)

    def format_comment(self, comment: Comment, actor: Optional[User] = None) -> Dict[str, Any]:
        """Format a comment with HAL links."""
        data = entity_to_json(comment)
        data['likeCount'] = len(comment.likes)
        data['isReply'] = comment.is_reply
        links = self.builder.affordance_builder.build_comment_affordances(comment, actor)
        return self.builder.build_resource_response(data, links)

    def format_comment_list(self, comments: List[Comment], path: str,
                            actor: Optional[User] = None) -> Dict[str, Any]:
        return self.builder.build_list_response([self.format_comment(c, actor) for c in comments], path)

    def format_user(self, user: User, actor: Optional[User] = None,
                    extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Format a user profile with HAL links."""
        data = entity_to_json(user, exclude=PRIVATE_USER_FIELDS)
        data['fullName'] = user.full_name
        data['isVerified'] = user.is_verified
        if extra:
            data.update(extra)
        links = self.builder.affordance_builder.build_user_affordances(user, actor)
        return self.builder.build_resource_response(data, links)

    def format_user_list(self, users: List[Dict[str, Any]], path: str) -> Dict[str, Any]:
        return self.builder.build_list_response(users, path)

    def format_problem(self, error_type: str, title: str, status: int, detail: str,
                       instance: str, errors: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        return self.builder.build_error_response(error_type, title, status, detail, instance, errors)

    def format_validation_error(
        self,
        detail: str,
        instance: str,
        validation_errors: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """Format a validation error response."""
        return self.format_problem("validation-error", "Validation Error", 400, detail, instance, validation_errors)

    def format_authentication_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format an authentication error response."""
        return self.format_problem("authentication-required", "Authentication Required", 401, detail, instance)

    def format_authorization_error(self, detail: str, instance: str) -> Dict[str, Any]:
        return self.format_problem("insufficient-permissions", "Insufficient Permissions", 403, detail, instance)

    def format_not_found_error(self, detail: str, instance: str) -> Dict[str, Any]:
        return self.format_problem("resource-not-found", "Resource Not Found", 404, detail, instance)

    def format_server_error(self, detail: str, instance: str) -> Dict[str, Any]:
        return self.format_problem("internal-server-error", "Internal Server Error", 500, detail, instance)


# Convenience function for creating HAL formatter
def create_hal_formatter(base_url: str) -> HalFormatter:
    """Create a HAL formatter instance."""
    return HalFormatter(base_url)
