"""
Domain Registry

Read-only catalog of scoring domains. Domains are seeded from settings
(see hackjudge.seed.seed_domains) and then treated as immutable.
"""
import logging
from typing import Dict, Iterable, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hackjudge.errors import ErrorCode, NotFoundError, ValidationError
from hackjudge.orm.domain import Domain

logger = logging.getLogger(__name__)


async def load_domains(db: AsyncSession) -> List[Domain]:
    """All domains ordered by key."""
    result = await db.execute(select(Domain).order_by(Domain.key))
    return list(result.scalars().all())


async def domain_names(db: AsyncSession) -> Dict[str, str]:
    """Mapping domain key -> display name."""
    return {d.key: d.name for d in await load_domains(db)}


async def get_domain(db: AsyncSession, key: str) -> Domain:
    result = await db.execute(select(Domain).where(Domain.key == key))
    domain = result.scalar_one_or_none()
    if domain is None:
        raise NotFoundError("Domain", key, code=ErrorCode.DOMAIN_NOT_FOUND)
    return domain


async def require_domain_keys(db: AsyncSession, keys: Iterable[str]) -> None:
    """
    Raise ValidationError if any key is not a registered domain.
    """
    wanted = set(keys)
    if not wanted:
        return
    result = await db.execute(select(Domain.key).where(Domain.key.in_(wanted)))
    known = set(result.scalars().all())
    unknown = sorted(wanted - known)
    if unknown:
        raise ValidationError(
            f"Unknown domain key(s): {', '.join(unknown)}",
            code=ErrorCode.UNKNOWN_DOMAIN,
            details={"domain_keys": unknown}
        )
