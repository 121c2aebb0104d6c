from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from config import ACCESS_TOKEN_EXPIRE_MINUTES
from errors import Forbidden, Unauthenticated
from models import UserRole
import policy

# --- CONFIGURATION SÉCURITÉ ---
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
# auto_error=False : l'absence de jeton est traitée ici, pour accepter aussi x-auth-token
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


class Actor(BaseModel):
    """Identité authentifiée transmise aux couches métier (jamais le jeton brut)."""
    id: int
    role: UserRole


# --- FONCTIONS UTILITAIRES ---
def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def create_access_token(user_id: int, role: UserRole, secret_key: str, algorithm: str,
                        expires_delta: Optional[timedelta] = None) -> str:
    expire_time = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": str(user_id), "role": UserRole(role).value, "exp": expire_time}
    return jwt.encode(to_encode, secret_key, algorithm=algorithm)

def verify_token(token: Optional[str], secret_key: str, algorithm: str) -> Actor:
    """Décode le jeton JWT et en extrait l'identité et le rôle. Aucun accès à la base."""
    if not token:
        raise Unauthenticated("Aucun jeton fourni, autorisation refusée")
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
        return Actor(id=int(payload["sub"]), role=UserRole(payload["role"]))
    except (JWTError, KeyError, TypeError, ValueError):
        raise Unauthenticated("Jeton invalide ou expiré")

# --- DÉPENDANCES FASTAPI ---

def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    x_auth_token: Optional[str] = Header(None),
) -> Actor:
    """Authentifie la requête à partir de l'en-tête Authorization (ou x-auth-token)."""
    settings = request.app.state.settings
    return verify_token(token or x_auth_token, settings.secret_key, settings.algorithm)

def get_current_admin_user(current_user: Actor = Depends(get_current_user)) -> Actor:
    """Vérifie que l'utilisateur actuel est un administrateur."""
    if not policy.is_admin(current_user.role):
        raise Forbidden("L'opération nécessite des privilèges d'administrateur")
    return current_user
