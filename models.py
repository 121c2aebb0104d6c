from datetime import datetime, timezone
import enum

from sqlalchemy import Column, Integer, String, Enum as SQLAlchemyEnum, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship

from database import Base


def _utcnow():
    return datetime.now(timezone.utc)


def _enum_values(enum_cls):
    # Stocke la valeur ("In Progress") plutôt que le nom du membre ("in_progress")
    return [member.value for member in enum_cls]


# Définition des énumérations pour les rôles et statuts
# Cela garantit que seules les valeurs prédéfinies peuvent être utilisées.
class UserRole(str, enum.Enum):
    admin = "ADMIN"
    user = "USER"


class TaskStatus(str, enum.Enum):
    pending = "Pending"
    in_progress = "In Progress"
    completed = "Completed"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(
        SQLAlchemyEnum(UserRole, values_callable=_enum_values, native_enum=False),
        default=UserRole.user,
        nullable=False,
    )
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    tasks = relationship("Task", back_populates="assignee")


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(
        SQLAlchemyEnum(TaskStatus, values_callable=_enum_values, native_enum=False),
        default=TaskStatus.pending,
        nullable=False,
    )
    # Date calendaire brute "YYYY-MM-DD" : jamais convertie en datetime, pas de décalage de fuseau
    due_date = Column(String(10), nullable=True)
    assignee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    file_path = Column(String, nullable=True)
    request_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    assignee = relationship("User", back_populates="tasks")

    @property
    def assignee_name(self):
        return self.assignee.username if self.assignee else None
