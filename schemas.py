import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from models import UserRole, TaskStatus

DUE_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def check_due_date(value: Optional[str]) -> Optional[str]:
    """
    Valide une date d'échéance sans jamais la convertir : la chaîne reçue
    est stockée et renvoyée telle quelle. Une chaîne vide efface la date.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if not DUE_DATE_PATTERN.match(value):
        raise ValueError("La date d'échéance doit être au format AAAA-MM-JJ")
    return value


# --- Schémas pour les utilisateurs ---

class UserBase(BaseModel):
    username: str = Field(..., min_length=1)
    email: EmailStr


# Inscription publique : le rôle est toujours USER
class RegisterRequest(UserBase):
    password: str = Field(..., min_length=1)


# Création par un administrateur (inclut le mot de passe et le rôle)
class UserCreate(UserBase):
    password: str = Field(..., min_length=1)
    role: UserRole = UserRole.user


# Schéma pour la lecture d'un utilisateur (réponse API), sans mot de passe
class User(BaseModel):
    id: int
    username: str
    email: str
    role: UserRole
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Le rôle est validé par le service pour renvoyer une erreur 400 explicite
class UserRoleUpdate(BaseModel):
    role: str


# --- Schémas pour l'Authentification ---

class LoginRequest(BaseModel):
    email: str
    password: str


class Token(BaseModel):
    token: str
    token_type: str = "bearer"


class TokenWithUser(Token):
    user: User


# --- Schémas pour les tâches ---

class Task(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    status: TaskStatus
    due_date: Optional[str] = None
    assignee_id: int
    assignee_name: Optional[str] = None
    file_path: Optional[str] = None
    request_message: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TaskUpdate(BaseModel):
    """
    Corps d'un PUT /tasks/{id}. Tous les champs sont optionnels ; les champs
    inconnus sont conservés pour que la politique d'autorisation puisse les
    comparer à l'état stocké.
    """
    model_config = ConfigDict(extra="allow")

    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    due_date: Optional[str] = None
    assignee_id: Optional[int] = None
    request_message: Optional[str] = None

    @field_validator("title", "status", "assignee_id")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("Ce champ ne peut pas être nul")
        return value

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value):
        if not value.strip():
            raise ValueError("Le titre ne peut pas être vide")
        return value

    @field_validator("description", "request_message")
    @classmethod
    def blank_to_none(cls, value):
        # Comme à la création : une chaîne vide équivaut à l'absence de valeur
        if value is not None and not value.strip():
            return None
        return value

    @field_validator("due_date")
    @classmethod
    def due_date_format(cls, value):
        return check_due_date(value)


class Pagination(BaseModel):
    totalItems: int
    totalPages: int
    currentPage: int
    itemsPerPage: int


class TaskPage(BaseModel):
    tasks: List[Task]
    pagination: Pagination


class Message(BaseModel):
    message: str
