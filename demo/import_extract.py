#!/usr/bin/env python3
"""
Load or dump a legacy card cross-reference extract. Run on the server.

    python demo/import_extract.py import XREFFILE.txt
    python demo/import_extract.py export XREFFILE.txt

Imports write straight to card_xrefs, so restart the API afterwards to
reload its index. Records with missing or unknown account/customer ids are
kept; GET /admin/xref/orphans lists them.
"""

import argparse
import asyncio

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app import models  # noqa: F401
from app.config import settings
from app.database import Base
from app.logging_config import configure_logging
from app.services.xref_extract import format_record, read_extract
from app.services.xref_index import CrossReferenceIndex
from app.services.xref_store import SqlXrefStore


async def run(command: str, path: str) -> None:
    configure_logging(settings)
    engine = create_async_engine(settings.DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    index = CrossReferenceIndex(SqlXrefStore(async_sessionmaker(engine, class_=AsyncSession)))
    await index.load()

    if command == "import":
        with open(path, encoding="ascii") as f:
            count = await index.import_records(read_extract(f))
        print(f"Imported {count} record(s); {await index.count()} in card_xrefs")
    else:
        records = await index.snapshot()
        with open(path, "w", encoding="ascii") as f:
            for xref in records:
                f.write(format_record(xref) + "\n")
        print(f"Exported {len(records)} record(s) to {path}")

    await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Legacy cross-reference extract tool")
    parser.add_argument("command", choices=["import", "export"])
    parser.add_argument("path", help="Extract file (50-byte fixed-width records)")
    args = parser.parse_args()
    asyncio.run(run(args.command, args.path))


if __name__ == "__main__":
    main()
