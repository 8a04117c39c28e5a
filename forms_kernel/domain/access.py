"""
Access control (``forms_kernel.domain.access``).

Responsibility
--------------
The single place that answers "may this actor submit / review /
final-approve on this form?" and "may this actor see this response?".
The workflow never looks at role ids.

Architecture position
---------------------
**Kernel domain layer**.  ``AccessControlEvaluator`` and
``ActorRoleProvider`` are protocols; role membership itself lives
outside the kernel (a chat-platform guild, an identity provider).

Invariants enforced
-------------------
* A form with an empty required-role set admits every actor for that
  capability.
* Otherwise the actor needs at least one role in the required set.
* A response is visible to its submitter, to reviewers while it is
  ``pending_review``, and to the form's final approvers in any status.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol

from forms_kernel.domain.forms import FormDefinition
from forms_kernel.domain.response import ResponseRecord, ResponseStatus


class AccessControlEvaluator(Protocol):
    """Capability checks consulted before every workflow mutation."""

    def can_submit(self, form: FormDefinition, actor_id: str) -> bool: ...

    def can_review(self, form: FormDefinition, actor_id: str) -> bool: ...

    def can_final_approve(self, form: FormDefinition, actor_id: str) -> bool: ...


class ActorRoleProvider(Protocol):
    """Resolves the role ids an actor currently holds."""

    def roles_for(self, actor_id: str) -> frozenset[str]: ...


def has_required_role(actor_roles: Iterable[str], required: frozenset[str]) -> bool:
    if not required:
        return True
    return not required.isdisjoint(actor_roles)


def can_view_response(
    access: AccessControlEvaluator,
    form: FormDefinition,
    record: ResponseRecord,
    actor_id: str,
) -> bool:
    if record.submitter_id == actor_id:
        return True
    if record.status is ResponseStatus.PENDING_REVIEW and access.can_review(form, actor_id):
        return True
    return access.can_final_approve(form, actor_id)


class RoleBasedAccessEvaluator:
    """Evaluates capabilities by intersecting actor roles with form role sets."""

    def __init__(self, roles: ActorRoleProvider):
        self._roles = roles

    def can_submit(self, form: FormDefinition, actor_id: str) -> bool:
        return has_required_role(self._roles.roles_for(actor_id), form.access_role_ids)

    def can_review(self, form: FormDefinition, actor_id: str) -> bool:
        return has_required_role(self._roles.roles_for(actor_id), form.reviewer_role_ids)

    def can_final_approve(self, form: FormDefinition, actor_id: str) -> bool:
        return has_required_role(
            self._roles.roles_for(actor_id), form.final_approver_role_ids
        )


class StaticRoleDirectory:
    """In-memory ``ActorRoleProvider`` for fixtures, scripts and tests."""

    def __init__(self, assignments: Mapping[str, Iterable[str]] | None = None):
        self._assignments: dict[str, frozenset[str]] = {
            actor: frozenset(roles) for actor, roles in (assignments or {}).items()
        }

    def roles_for(self, actor_id: str) -> frozenset[str]:
        return self._assignments.get(actor_id, frozenset())

    def grant(self, actor_id: str, *role_ids: str) -> None:
        self._assignments[actor_id] = self.roles_for(actor_id) | frozenset(role_ids)

    def revoke(self, actor_id: str, *role_ids: str) -> None:
        self._assignments[actor_id] = self.roles_for(actor_id) - frozenset(role_ids)
