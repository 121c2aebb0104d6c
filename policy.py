"""
Politique d'autorisation sur les tâches.

Fonctions pures : elles ne lisent ni la base ni la requête, et décident
uniquement à partir du rôle de l'acteur, de son identifiant et du
propriétaire (assigné) de la tâche.
"""
from models import UserRole, TaskStatus

ADMIN_FIELDS = frozenset({"title", "description", "status", "due_date", "assignee_id", "request_message"})
USER_FIELDS = frozenset({"status", "request_message"})


def is_admin(actor_role) -> bool:
    return actor_role == UserRole.admin


def is_owner(actor_id, owner_id) -> bool:
    return actor_id is not None and actor_id == owner_id


def mutable_fields(actor_role) -> frozenset:
    """Champs qu'un acteur de ce rôle peut modifier sur une tâche qu'il a le droit de modifier."""
    if is_admin(actor_role):
        return ADMIN_FIELDS
    if actor_role == UserRole.user:
        return USER_FIELDS
    return frozenset()


def can_mutate(actor_role, actor_id, owner_id) -> bool:
    if is_admin(actor_role):
        return True
    return actor_role == UserRole.user and is_owner(actor_id, owner_id)


def can_delete(actor_role, actor_id, owner_id, status) -> bool:
    # Un utilisateur ne supprime que ses propres tâches terminées
    if is_admin(actor_role):
        return True
    return (
        actor_role == UserRole.user
        and is_owner(actor_id, owner_id)
        and status == TaskStatus.completed
    )
