"""Gestion des comptes : inscription, création par un administrateur, rôles et liste."""
import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import models
import schemas
from dependencies import hash_password, verify_password
from errors import Conflict, InvalidArgument, NotFound, Unauthenticated

EMAIL_ALREADY_USED = "Un utilisateur avec cet email existe déjà"


def _insert_user(db: Session, username: str, email: str, password: str, role: models.UserRole) -> models.User:
    if db.query(models.User).filter(models.User.email == email).first():
        raise Conflict(EMAIL_ALREADY_USED)

    new_user = models.User(
        username=username,
        email=email,
        hashed_password=hash_password(password),
        role=role,
    )
    db.add(new_user)
    try:
        db.commit()
    except IntegrityError:
        # Deux inscriptions simultanées avec le même email : la contrainte UNIQUE tranche
        db.rollback()
        raise Conflict(EMAIL_ALREADY_USED)
    db.refresh(new_user)
    logging.info(f"Utilisateur {new_user.id} ({new_user.email}) créé avec le rôle {new_user.role.value}")
    return new_user


def register_user(db: Session, payload: schemas.RegisterRequest) -> models.User:
    """Inscription publique : le rôle est toujours USER."""
    return _insert_user(db, payload.username, payload.email, payload.password, models.UserRole.user)


def create_user(db: Session, payload: schemas.UserCreate) -> models.User:
    return _insert_user(db, payload.username, payload.email, payload.password, payload.role)


def authenticate(db: Session, email: str, password: str) -> models.User:
    user = db.query(models.User).filter(models.User.email == email).first()
    if not user or not verify_password(password, user.hashed_password):
        raise Unauthenticated("Email ou mot de passe incorrect")
    return user


def set_role(db: Session, user_id: int, new_role: str) -> models.User:
    try:
        role = models.UserRole(new_role)
    except ValueError:
        allowed = ", ".join(r.value for r in models.UserRole)
        raise InvalidArgument(f"Rôle invalide '{new_role}' (valeurs possibles : {allowed})")

    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise NotFound("Utilisateur non trouvé")

    user.role = role
    db.commit()
    db.refresh(user)
    logging.info(f"Rôle de l'utilisateur {user_id} changé en {role.value}")
    return user


def list_users(db: Session) -> List[models.User]:
    # Les plus récents d'abord
    return db.query(models.User).order_by(models.User.created_at.desc(), models.User.id.desc()).all()


def ensure_default_admin(db: Session, email: Optional[str], password: Optional[str], username: Optional[str] = None):
    """Crée un utilisateur administrateur par défaut s'il n'existe pas."""
    if not email or not password:
        return None
    admin_user = db.query(models.User).filter(models.User.email == email).first()
    if admin_user:
        return admin_user
    return _insert_user(db, username or "admin", email, password, models.UserRole.admin)
