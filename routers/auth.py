from datetime import timedelta

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

import schemas
from database import get_db
from dependencies import Actor, create_access_token, get_current_user
from errors import NotFound
import models
from services import accounts

router = APIRouter()


def _issue_token(request: Request, user: models.User) -> str:
    settings = request.app.state.settings
    return create_access_token(
        user.id,
        user.role,
        settings.secret_key,
        settings.algorithm,
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
    )


@router.post("/register", response_model=schemas.Token, status_code=status.HTTP_201_CREATED)
def register(payload: schemas.RegisterRequest, request: Request, db: Session = Depends(get_db)):
    """
    Inscrit un nouvel utilisateur (rôle USER) et retourne un token JWT.
    """
    user = accounts.register_user(db, payload)
    return {"token": _issue_token(request, user)}


@router.post("/login", response_model=schemas.TokenWithUser)
def login(credentials: schemas.LoginRequest, request: Request, db: Session = Depends(get_db)):
    """
    Connecte l'utilisateur et retourne un token JWT avec son profil.
    """
    user = accounts.authenticate(db, credentials.email, credentials.password)
    return {"token": _issue_token(request, user), "user": user}


@router.get("/me", response_model=schemas.User)
def read_users_me(current_user: Actor = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Retourne les informations de l'utilisateur actuellement connecté.
    """
    user = db.query(models.User).filter(models.User.id == current_user.id).first()
    if not user:
        raise NotFound("Utilisateur non trouvé")
    return user
