"""
Gestione dello schema database di Garage Documents.

Uso:
    python reset_db.py            # elimina e ricrea tutte le tabelle
    python reset_db.py --create   # crea solo le tabelle mancanti
"""

import argparse
import asyncio
import os
import sys

# Aggiungi backend/ alla PYTHONPATH per importare app.*
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "backend"))

from app.core.database import close_db, engine
from app.models import Base


async def reset(create_only: bool) -> None:
    print(f"Connessione al database ({engine.url.render_as_string(hide_password=True)})...")
    async with engine.begin() as conn:
        if not create_only:
            print("Eliminazione tabelle documenti, righe, clienti e catalogo...")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    await close_db()
    print(f"Schema pronto: {', '.join(sorted(Base.metadata.tables))}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Crea o resetta lo schema del database")
    parser.add_argument("--create", action="store_true", help="Crea le tabelle senza eliminare i dati")
    args = parser.parse_args()
    asyncio.run(reset(create_only=args.create))
