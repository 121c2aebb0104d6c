# main.py: Point d'entrée pour le serveur uvicorn.
# Ce fichier importe l'application créée par l'app factory.
# Les tables et l'administrateur par défaut sont créés au démarrage.

from dotenv import load_dotenv

# Charger les variables d'environnement au tout début, avant la lecture de config.py
load_dotenv()

from app_factory import create_app  # noqa: E402

app = create_app()
