from typing import Optional

from sqlalchemy.orm import Session

from traytic_app.cache.strategies import SiteCache, UNKNOWN_SITE
from traytic_app.config import settings
from traytic_app.models.site import Site, SiteMember


def normalize_domain(domain: str) -> str:
    """Lower-case a domain and strip a leading www."""
    domain = domain.strip().lower()
    if domain.startswith("www."):
        domain = domain[4:]
    return domain


class SitesRegistry:
    """
    Read-only view of the site registry used by ingestion and the query API.

    Site CRUD lives in the org/billing service; this class only answers
    "which site is this domain" and "may this user read this site".
    """

    def __init__(self, db: Session, cache: Optional[SiteCache] = None):
        """
        Args:
            db: Database session
            cache: Domain lookup cache (optional)
        """
        self.db = db
        self.cache = cache

    async def resolve_site_by_domain(self, domain: str) -> Optional[str]:
        """
        Resolve a domain to a site id using the Cache-Aside pattern.

        Flow:
        1. Check cache first (hits and remembered misses)
        2. Otherwise query the database
        3. Remember the answer, found or not

        Returns:
            Site id, or None if no site has this domain
        """
        domain = normalize_domain(domain)
        if not domain:
            return None

        if self.cache:
            cached = await self.cache.lookup(domain)
            if cached is not None:
                return cached if cached != UNKNOWN_SITE else None

        site = self.db.query(Site).filter(Site.domain == domain).first()
        site_id = site.id if site else None

        if self.cache:
            ttl = settings.cache_ttl if site_id else settings.cache_unknown_ttl
            await self.cache.remember(domain, site_id, ttl)
        return site_id

    def user_owns_site(self, user_id: str, site_id: str) -> bool:
        """True if the user is a member of the organization owning the site"""
        site = (
            self.db.query(Site)
            .join(SiteMember, SiteMember.org_id == Site.org_id)
            .filter(Site.id == site_id, SiteMember.user_id == user_id)
            .first()
        )
        return site is not None
