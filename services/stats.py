import asyncio

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import func

import models
from database import Database


def _count_users(database: Database) -> int:
    with database.session() as db:
        return db.query(func.count(models.User.id)).scalar() or 0


def _count_tasks(database: Database) -> int:
    with database.session() as db:
        return db.query(func.count(models.Task.id)).scalar() or 0


def _count_tasks_by_status(database: Database) -> dict:
    with database.session() as db:
        rows = db.query(models.Task.status, func.count(models.Task.id)).group_by(models.Task.status).all()
    return {status.value: count for status, count in rows}


async def collect_stats(database: Database) -> dict:
    """
    Statistiques du tableau de bord administrateur. Les trois comptages sont
    indépendants et en lecture seule : ils s'exécutent en parallèle, chacun
    avec sa propre session.
    """
    total_users, total_tasks, by_status = await asyncio.gather(
        run_in_threadpool(_count_users, database),
        run_in_threadpool(_count_tasks, database),
        run_in_threadpool(_count_tasks_by_status, database),
    )
    return {
        "totalUsers": total_users,
        "totalTasks": total_tasks,
        "tasksByStatus": {status.value: by_status.get(status.value, 0) for status in models.TaskStatus},
    }
