# app/main.py
from app.api import create_app
from app.data.database import Base, engine
from app.utils.logging import get_logger
import uvicorn

logger = get_logger(__name__)

# import de tous les modeles AVANT create_all
from app.data import models  # noqa: F401


def init_db() -> None:
    logger.info(f"Initialisation de la base, tables: {list(Base.metadata.tables.keys())}")
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        logger.error(f"Création des tables impossible: {e}")
        raise
    logger.info("Tables créées")


init_db()

app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
