import asyncio
import sys
import os

# Aggiungi backend/ alla PYTHONPATH per importare estimator.*
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "backend"))

from estimator.core.database import engine
from estimator.models import Base


async def reset():
    print(f"Connessione a {engine.url.render_as_string(hide_password=True)}, eliminazione tabelle...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        print(f"Tabelle eliminate. Creazione di {len(Base.metadata.tables)} tabelle...")
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print("Database dei preventivi resettato con successo!")


if __name__ == "__main__":
    asyncio.run(reset())
