# config.py
"""
Fichier de configuration centralisée pour le backend de gestion des tâches.
Les valeurs sont lues depuis l'environnement (fichier .env chargé dans main.py).
"""
import os
from typing import List

from pydantic import BaseModel

# Configuration de la sécurité JWT (JSON Web Token)
SECRET_KEY = os.getenv("SECRET_KEY", "change_me_task_manager_secret_key_0123456789")  # IMPORTANT: à remplacer en production
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./task_manager.db")

# Répertoire des pièces jointes, servi en statique sous /uploads
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")

# Administrateur créé au démarrage s'il n'existe pas
DEFAULT_ADMIN_EMAIL = os.getenv("DEFAULT_ADMIN_EMAIL", "admin@example.com")
DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", "admin")
DEFAULT_ADMIN_USERNAME = os.getenv("DEFAULT_ADMIN_USERNAME", "admin")

CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "100"))


class Settings(BaseModel):
    database_url: str = DATABASE_URL
    secret_key: str = SECRET_KEY
    algorithm: str = ALGORITHM
    access_token_expire_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES
    upload_dir: str = UPLOAD_DIR
    default_admin_email: str = DEFAULT_ADMIN_EMAIL
    default_admin_password: str = DEFAULT_ADMIN_PASSWORD
    default_admin_username: str = DEFAULT_ADMIN_USERNAME
    cors_origins: List[str] = [o.strip() for o in CORS_ORIGINS.split(",") if o.strip()]
    log_level: str = LOG_LEVEL
    default_page_size: int = DEFAULT_PAGE_SIZE
    max_page_size: int = MAX_PAGE_SIZE


def get_settings() -> Settings:
    """Construit les paramètres à partir des variables d'environnement courantes."""
    return Settings()
