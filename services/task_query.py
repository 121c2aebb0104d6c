"""
Moteur de requêtes sur les tâches : filtres, tri et pagination.

Les filtres sont construits une seule fois sous forme d'une liste ordonnée de
prédicats SQLAlchemy. Cette même liste alimente la requête de données et la
requête de comptage, qui ne reçoit ni tri, ni limite, ni décalage.
"""
import math
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

import models
import schemas
from config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from errors import InvalidArgument

DEFAULT_PAGE = 1
DEFAULT_LIMIT = DEFAULT_PAGE_SIZE
MAX_LIMIT = MAX_PAGE_SIZE


@dataclass(frozen=True)
class TaskFilters:
    status: Optional[models.TaskStatus] = None
    search: Optional[str] = None


def parse_positive_int(value, name: str, default: int) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    try:
        number = int(str(value).strip())
    except ValueError:
        raise InvalidArgument(f"Le paramètre '{name}' doit être un entier")
    if number <= 0:
        raise InvalidArgument(f"Le paramètre '{name}' doit être strictement positif")
    return number


def parse_pagination(page=None, limit=None, default_limit: int = DEFAULT_LIMIT, max_limit: int = MAX_LIMIT):
    page_number = parse_positive_int(page, "page", DEFAULT_PAGE)
    page_limit = parse_positive_int(limit, "limit", default_limit)
    if page_limit > max_limit:
        raise InvalidArgument(f"Le paramètre 'limit' ne peut pas dépasser {max_limit}")
    return page_number, page_limit


def parse_filters(status: Optional[str] = None, search: Optional[str] = None) -> TaskFilters:
    task_status = None
    if status:
        try:
            task_status = models.TaskStatus(status)
        except ValueError:
            allowed = ", ".join(s.value for s in models.TaskStatus)
            raise InvalidArgument(f"Statut inconnu '{status}' (valeurs possibles : {allowed})")
    search = (search or "").strip() or None
    return TaskFilters(status=task_status, search=search)


def _like_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def build_predicates(owner_id: Optional[int], filters: TaskFilters) -> List:
    """
    Prédicats combinés par AND. owner_id à None correspond à la liste
    administrateur, non restreinte à un assigné.
    """
    predicates = []
    if owner_id is not None:
        predicates.append(models.Task.assignee_id == owner_id)
    if filters.status is not None:
        predicates.append(models.Task.status == filters.status)
    if filters.search:
        predicates.append(models.Task.title.ilike(_like_pattern(filters.search), escape="\\"))
    return predicates


def task_ordering() -> List:
    # Échéance croissante, tâches sans échéance en dernier, puis les plus récentes d'abord
    return [
        models.Task.due_date.is_(None),
        models.Task.due_date.asc(),
        models.Task.created_at.desc(),
        models.Task.id.desc(),
    ]


def count_tasks(db: Session, predicates: List) -> int:
    return db.query(func.count(models.Task.id)).filter(*predicates).scalar() or 0


def list_tasks(db: Session, owner_id: Optional[int], filters: TaskFilters, page: int, limit: int) -> schemas.TaskPage:
    predicates = build_predicates(owner_id, filters)

    items = (
        db.query(models.Task)
        .options(joinedload(models.Task.assignee))
        .filter(*predicates)
        .order_by(*task_ordering())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    total_items = count_tasks(db, predicates)

    return schemas.TaskPage(
        tasks=[schemas.Task.model_validate(task) for task in items],
        pagination=schemas.Pagination(
            totalItems=total_items,
            totalPages=math.ceil(total_items / limit),
            currentPage=page,
            itemsPerPage=limit,
        ),
    )
