from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from sqlalchemy.orm import Session

import schemas
from database import get_db
from dependencies import Actor, get_current_admin_user, get_current_user
from services import task_mutation, task_query

router = APIRouter()


@router.get("", response_model=schemas.TaskPage, summary="Lister mes tâches")
def list_my_tasks(
    request: Request,
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    """Tâches assignées à l'utilisateur connecté, filtrées, triées par échéance et paginées."""
    settings = request.app.state.settings
    page_number, page_limit = task_query.parse_pagination(
        page, limit, default_limit=settings.default_page_size, max_limit=settings.max_page_size
    )
    filters = task_query.parse_filters(status, search)
    return task_query.list_tasks(db, current_user.id, filters, page_number, page_limit)


@router.post("", response_model=schemas.Task, status_code=201, summary="Créer une tâche")
def create_task(
    request: Request,
    title: str = Form(...),
    assignee_id: int = Form(...),
    description: Optional[str] = Form(None),
    status: Optional[str] = Form(None),
    due_date: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_admin: Actor = Depends(get_current_admin_user),
):
    return task_mutation.create_task(
        db,
        current_admin,
        title=title,
        assignee_id=assignee_id,
        description=description,
        status=status,
        due_date=due_date,
        attachment=file,
        upload_dir=request.app.state.settings.upload_dir,
    )


@router.put("/{task_id}", response_model=schemas.Task, summary="Mettre à jour une tâche")
def update_task(
    task_id: int,
    payload: schemas.TaskUpdate,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    """
    Un administrateur peut modifier tous les champs. Un utilisateur ne peut
    modifier que le statut et le message de demande de ses propres tâches.
    """
    return task_mutation.update_task(db, current_user, task_id, payload)


@router.delete("/{task_id}", response_model=schemas.Message, summary="Supprimer une tâche")
def delete_task(
    task_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    return task_mutation.delete_task(db, current_user, task_id, request.app.state.settings.upload_dir)
