"""Authentication readiness for tool descriptors.

A descriptor is authenticated when every one of its auth requirements is
satisfied, and a requirement is satisfied when at least one of its ``||``
alternatives resolves to a usable credential.
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from toolhub.models import AuthRequirement, ToolDescriptor

# Placeholder meaning "the end user must supply this credential".
USER_PROVIDED = "user_provided"


def _is_usable(value: str | None) -> bool:
    if value is None:
        return False
    if not value.strip():
        return False
    return value != USER_PROVIDED


class AuthFieldResolver:
    """Checks auth requirements against a credential source (env by default)."""

    def __init__(self, credentials: Mapping[str, str] | None = None) -> None:
        self._credentials = credentials if credentials is not None else os.environ

    def is_satisfied(self, requirement: AuthRequirement) -> bool:
        return any(_is_usable(self._credentials.get(field)) for field in requirement.alternatives)

    def is_authenticated(self, descriptor: ToolDescriptor) -> bool:
        if not descriptor.auth_config:
            return False
        return all(self.is_satisfied(req) for req in descriptor.auth_config)
