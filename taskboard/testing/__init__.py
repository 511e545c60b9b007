"""
Shared test utilities and factories.

Re-exports all factory functions for convenient imports:
    from taskboard.testing import create_user, create_project, get_auth_headers
"""

from taskboard.testing.factories import (
    DEFAULT_PASSWORD,
    add_project_member,
    create_comment,
    create_project,
    create_task,
    create_user,
    get_auth_headers,
    get_auth_token,
)

__all__ = [
    "DEFAULT_PASSWORD",
    "add_project_member",
    "create_comment",
    "create_project",
    "create_task",
    "create_user",
    "get_auth_headers",
    "get_auth_token",
]
