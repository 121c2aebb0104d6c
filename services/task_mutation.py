"""
Moteur de mutation des tâches : création, mise à jour et suppression.

Chaque opération vérifie l'existence de la tâche avant l'autorisation, puis
écrit avec une seule instruction conditionnée (UPDATE/DELETE ... WHERE id = ?
AND <droit de l'acteur>) pour que la vérification et l'écriture portent sur
la même ligne.
"""
import logging
from typing import Optional

from fastapi import UploadFile
from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import models
import policy
import schemas
from dependencies import Actor
from errors import Forbidden, InvalidArgument, NotFound
from utils.uploads import remove_upload, save_upload

TASK_NOT_FOUND = "Tâche non trouvée"


def get_task_or_404(db: Session, task_id: int) -> models.Task:
    task = db.query(models.Task).filter(models.Task.id == task_id).first()
    if not task:
        raise NotFound(TASK_NOT_FOUND)
    return task


def validate_assignee(db: Session, assignee_id) -> models.User:
    """L'assigné doit exister et avoir le rôle USER."""
    assignee = db.query(models.User).filter(models.User.id == assignee_id).first()
    if not assignee:
        raise InvalidArgument(f"L'utilisateur assigné {assignee_id} n'existe pas")
    if assignee.role != models.UserRole.user:
        raise InvalidArgument("Une tâche ne peut être assignée qu'à un utilisateur de rôle USER")
    return assignee


def _write_guard(actor: Actor):
    # Restriction ajoutée au WHERE des écritures pour un acteur non administrateur
    if policy.is_admin(actor.role):
        return []
    return [models.Task.assignee_id == actor.id]


def create_task(
    db: Session,
    actor: Actor,
    *,
    title: str,
    assignee_id: int,
    upload_dir: str,
    description: Optional[str] = None,
    status: Optional[str] = None,
    due_date: Optional[str] = None,
    attachment: Optional[UploadFile] = None,
) -> schemas.Task:
    if not policy.is_admin(actor.role):
        raise Forbidden("Seul un administrateur peut créer une tâche")

    title = (title or "").strip()
    if not title:
        raise InvalidArgument("Le titre est obligatoire")

    try:
        task_status = models.TaskStatus(status) if status else models.TaskStatus.pending
    except ValueError:
        raise InvalidArgument(f"Statut inconnu '{status}'")

    try:
        due_date = schemas.check_due_date(due_date)
    except ValueError as e:
        raise InvalidArgument(str(e))

    validate_assignee(db, assignee_id)

    file_path = None
    if attachment is not None and attachment.filename:
        file_path = save_upload(attachment, upload_dir)

    new_task = models.Task(
        title=title,
        description=description or None,
        status=task_status,
        due_date=due_date,
        assignee_id=assignee_id,
        file_path=file_path,
    )
    try:
        db.add(new_task)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        # Pas de fichier orphelin si l'insertion échoue
        if file_path:
            remove_upload(file_path, upload_dir)
        raise
    db.refresh(new_task)

    logging.info(f"Tâche {new_task.id} créée par l'administrateur {actor.id} et assignée à {assignee_id}")
    return schemas.Task.model_validate(new_task)


def update_task(db: Session, actor: Actor, task_id: int, payload: schemas.TaskUpdate) -> schemas.Task:
    task = get_task_or_404(db, task_id)

    if not policy.can_mutate(actor.role, actor.id, task.assignee_id):
        logging.warning(f"Mise à jour refusée : la tâche {task_id} n'est pas assignée à l'utilisateur {actor.id}")
        raise NotFound(TASK_NOT_FOUND)

    allowed = policy.mutable_fields(actor.role)
    current = schemas.Task.model_validate(task).model_dump(mode="json")

    submitted = payload.model_dump(exclude_unset=True, mode="json")
    submitted.update(payload.model_extra or {})

    changes = {}
    for field, value in submitted.items():
        if field in allowed:
            changes[field] = value
        elif value != current.get(field):
            logging.warning(f"Mise à jour refusée : champ '{field}' non modifiable par {actor.id} ({actor.role.value})")
            raise Forbidden(f"Vous n'êtes pas autorisé à modifier le champ '{field}'")

    if "status" in changes:
        changes["status"] = models.TaskStatus(changes["status"])
    if "assignee_id" in changes and changes["assignee_id"] != task.assignee_id:
        validate_assignee(db, changes["assignee_id"])

    if changes:
        stmt = (
            update(models.Task)
            .where(models.Task.id == task_id, *_write_guard(actor))
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        result = db.execute(stmt)
        if result.rowcount == 0:
            # La tâche a été supprimée ou réassignée entre la lecture et l'écriture
            db.rollback()
            raise NotFound(TASK_NOT_FOUND)
        db.commit()
        logging.info(f"Tâche {task_id} mise à jour par {actor.id} : {sorted(changes)}")

    db.refresh(task)
    return schemas.Task.model_validate(task)


def delete_task(db: Session, actor: Actor, task_id: int, upload_dir: str) -> dict:
    task = get_task_or_404(db, task_id)

    if not (policy.is_admin(actor.role) or policy.is_owner(actor.id, task.assignee_id)):
        logging.warning(f"Suppression refusée : la tâche {task_id} n'est pas assignée à l'utilisateur {actor.id}")
        raise NotFound(TASK_NOT_FOUND)

    if not policy.can_delete(actor.role, actor.id, task.assignee_id, task.status):
        logging.warning(f"Suppression refusée : tâche {task_id} au statut '{task.status.value}'")
        raise Forbidden("Seules les tâches terminées peuvent être supprimées")

    guard = _write_guard(actor)
    if not policy.is_admin(actor.role):
        guard.append(models.Task.status == models.TaskStatus.completed)

    file_path = task.file_path
    stmt = (
        delete(models.Task)
        .where(models.Task.id == task_id, *guard)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if result.rowcount == 0:
        db.rollback()
        raise NotFound(TASK_NOT_FOUND)
    db.commit()
    # L'objet chargé correspond à une ligne qui n'existe plus
    db.expunge(task)

    if file_path:
        try:
            remove_upload(file_path, upload_dir)
        except OSError as e:
            # La tâche est déjà supprimée : le fichier restant n'est pas une erreur pour l'appelant
            logging.warning(f"Pièce jointe {file_path} de la tâche {task_id} non supprimée : {e}")

    logging.info(f"Tâche {task_id} supprimée par {actor.id}")
    return {"message": "Tâche supprimée avec succès."}
