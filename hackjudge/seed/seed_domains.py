"""
hackjudge/seed/seed_domains.py
Seed the domain catalog from settings (idempotent)
"""
import asyncio
import logging
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hackjudge.config.settings import settings
from hackjudge.orm.domain import Domain

logger = logging.getLogger(__name__)


async def seed_domains(db: AsyncSession, domains: Optional[Iterable[Tuple[str, str]]] = None) -> List[Domain]:
    """
    Insert configured domains that do not exist yet.

    Existing domains are never renamed; the key is the identity.
    Returns the domains that were created.
    """
    domains = list(domains if domains is not None else settings.DOMAINS)
    result = await db.execute(select(Domain.key))
    existing = set(result.scalars().all())

    created = []
    for key, name in domains:
        if key in existing:
            logger.debug(f"Domain {key} already exists, skipping")
            continue
        domain = Domain(key=key, name=name)
        db.add(domain)
        created.append(domain)
        existing.add(key)

    await db.commit()
    logger.info(f"Seeded {len(created)} domain(s); {len(existing)} total")
    return created


async def seed_database() -> None:
    from hackjudge.database import AsyncSessionLocal, init_db

    await init_db()
    async with AsyncSessionLocal() as db:
        await seed_domains(db)


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s"
    )
    asyncio.run(seed_database())
