"""
Lookup of source profiles by name.

Administrator-managed rows in ``scraper_sources`` take precedence over the
profiles shipped with the code. The scraper only ever reads profiles.
"""

import logging
from typing import Mapping, Optional

from sqlalchemy.orm import Session

from manga_scraper.core.exceptions import UnknownSource
from manga_scraper.core.source_profiles import (
    BUILTIN_PROFILES,
    SelectorSet,
    SourceProfile,
    normalize_source_name,
)
from manga_scraper.repositories.scraper_source_repo import ScraperSourceRepository

logger = logging.getLogger(__name__)


class SourceProfileRegistry:
    def __init__(
        self, session: Session, builtins: Optional[Mapping[str, SourceProfile]] = None
    ) -> None:
        self.repo = ScraperSourceRepository(session)
        self.builtins = dict(BUILTIN_PROFILES if builtins is None else builtins)

    def get(self, name: str) -> SourceProfile:
        key = normalize_source_name(name)
        row = self.repo.get_active(key)
        if row is not None:
            return SourceProfile.from_config(row.name, row.base_url, row.config)
        if key in self.builtins:
            return self.builtins[key]
        raise UnknownSource(name)

    def list_profiles(self) -> list[SourceProfile]:
        profiles = dict(self.builtins)
        for row in self.repo.list_all():
            if row.is_active:
                profiles[row.name] = SourceProfile.from_config(row.name, row.base_url, row.config)
        return sorted(profiles.values(), key=lambda p: p.name)

    def save(
        self, name: str, base_url: str, selectors: dict, is_active: bool = True
    ) -> SourceProfile:
        """Validate and store a profile; raises pydantic.ValidationError on bad selectors."""
        key = normalize_source_name(name)
        profile = SourceProfile(
            name=key, base_url=base_url, selectors=SelectorSet.model_validate(selectors)
        )
        self.repo.save(key, profile.base_url, {"selectors": selectors}, is_active=is_active)
        logger.info("Saved source profile '%s' (%s)", key, profile.base_url)
        return profile
