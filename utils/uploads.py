import os
import re
import shutil
import time
import uuid

from fastapi import UploadFile

# Préfixe public des fichiers, monté en statique par app_factory
UPLOADS_URL_PREFIX = "uploads"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def stored_name_for(original_name: str) -> str:
    """
    Nom de stockage unique : horodatage en millisecondes + suffixe aléatoire +
    nom d'origine nettoyé (sans chemin ni caractères spéciaux).
    """
    base = os.path.basename(original_name or "").strip() or "fichier"
    base = _UNSAFE_CHARS.sub("_", base)
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{base}"


def save_upload(file: UploadFile, upload_dir: str) -> str:
    """Enregistre le fichier téléversé et retourne son chemin relatif public ("uploads/<nom>")."""
    os.makedirs(upload_dir, exist_ok=True)
    name = stored_name_for(file.filename)
    file_path = os.path.join(upload_dir, name)
    try:
        with open(file_path, "wb") as buffer:
            shutil.copyfileobj(file.file, buffer)
    finally:
        file.file.close()
    return f"{UPLOADS_URL_PREFIX}/{name}"


def remove_upload(relative_path: str, upload_dir: str) -> bool:
    """Supprime le fichier physique d'une pièce jointe. Retourne False s'il n'existe pas."""
    if not relative_path:
        return False
    file_path = os.path.join(upload_dir, os.path.basename(relative_path))
    if not os.path.exists(file_path):
        return False
    os.remove(file_path)
    return True
