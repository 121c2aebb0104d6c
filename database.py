# Base de données: configuration et cycle de vie de la connexion SQLAlchemy.

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class Database:
    """
    Poignée explicite vers le stockage : un moteur (pool de connexions) et une
    fabrique de sessions. Créée par create_app, ouverte au démarrage et libérée
    à l'arrêt de l'application.
    """

    def __init__(self, url: str):
        connect_args = {}
        if url.startswith("sqlite"):
            # SQLite refuse par défaut le partage de connexion entre threads
            connect_args = {"check_same_thread": False}
        self.engine = create_engine(url, connect_args=connect_args)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def create_tables(self):
        # SQLAlchemy crée toutes les tables qui héritent de Base (idempotent).
        import models  # noqa: F401  enregistre les modèles auprès de Base
        Base.metadata.create_all(bind=self.engine)

    def session(self):
        return self.SessionLocal()

    def close(self):
        self.engine.dispose()


# Dépendance FastAPI pour obtenir une session de base de données
# Cette fonction sera appelée pour chaque requête nécessitant un accès à la BDD.
def get_db(request: Request):
    db = request.app.state.db.session()
    try:
        yield db
    finally:
        db.close()
