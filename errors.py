"""
Erreurs métier de l'API.

Chaque classe est une HTTPException : FastAPI la convertit directement en
réponse JSON {"detail": "..."} avec le bon code HTTP, que l'erreur soit levée
dans un routeur ou dans un service.
"""
from fastapi import HTTPException, status


class Unauthenticated(HTTPException):
    def __init__(self, detail: str = "Impossible de valider les informations d'identification"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class Forbidden(HTTPException):
    def __init__(self, detail: str = "Accès refusé"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class NotFound(HTTPException):
    def __init__(self, detail: str = "Ressource non trouvée"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class Conflict(HTTPException):
    def __init__(self, detail: str = "Ressource déjà existante"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class InvalidArgument(HTTPException):
    def __init__(self, detail: str = "Requête invalide"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


INTERNAL_ERROR_DETAIL = "Erreur interne du serveur"
