from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

import schemas
from database import get_db
from dependencies import get_current_admin_user
from services import accounts, stats, task_query

# Toutes les routes de ce fichier exigent un administrateur
router = APIRouter(dependencies=[Depends(get_current_admin_user)])


@router.get("/stats", summary="Statistiques du tableau de bord")
async def get_stats(request: Request):
    return await stats.collect_stats(request.app.state.db)


@router.get("/users", summary="Lister tous les utilisateurs", response_model=List[schemas.User])
def list_users(db: Session = Depends(get_db)):
    return accounts.list_users(db)


@router.post("/users", summary="Créer un nouvel utilisateur", response_model=schemas.User, status_code=201)
def create_user(user: schemas.UserCreate, db: Session = Depends(get_db)):
    return accounts.create_user(db, user)


@router.put("/users/{user_id}/role", summary="Modifier le rôle d'un utilisateur", response_model=schemas.User)
def update_user_role(user_id: int, role_update: schemas.UserRoleUpdate, db: Session = Depends(get_db)):
    return accounts.set_role(db, user_id, role_update.role)


@router.get("/tasks", summary="Lister toutes les tâches", response_model=schemas.TaskPage)
def list_all_tasks(
    request: Request,
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Toutes les tâches, quel que soit l'assigné, avec les mêmes filtres que /tasks."""
    settings = request.app.state.settings
    page_number, page_limit = task_query.parse_pagination(
        page, limit, default_limit=settings.default_page_size, max_limit=settings.max_page_size
    )
    filters = task_query.parse_filters(status, search)
    return task_query.list_tasks(db, None, filters, page_number, page_limit)
