"""
Slug Allocator

Derives a URL-safe, collision-free slug for a new or renamed campaign.

The pre-check against the live table only picks a likely-free candidate;
the unique constraint on campaigns.slug decides at insert time. Callers
run ``allocate`` with the executor of the transaction that performs the
insert.
"""

import logging
import random
import re
import string
from typing import Any, Iterable, Optional

from .protocols import CampaignRepositoryProtocol

logger = logging.getLogger(__name__)

MIN_SLUG_LENGTH = 3
RANDOM_SUFFIX_LENGTH = 5

_UNSAFE = re.compile(r"[^\w\s-]")
_SEPARATORS = re.compile(r"[\s_-]+")
_EDGE_HYPHENS = re.compile(r"^-+|-+$")
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def slugify(title: str) -> str:
    """
    Normalize a title into a slug.

    >>> slugify("Help My Dog!")
    'help-my-dog'
    >>> slugify("x")
    'xxx'
    """
    slug = (title or "").lower().strip()
    slug = _UNSAFE.sub("", slug)
    slug = _SEPARATORS.sub("-", slug)
    slug = _EDGE_HYPHENS.sub("", slug)
    # \w lets non-ascii letters through; keep the slug URL-safe
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    slug = _EDGE_HYPHENS.sub("", re.sub(r"-{2,}", "-", slug))

    if len(slug) < MIN_SLUG_LENGTH:
        pad = slug[0] if slug else "a"
        slug = slug + pad * (MIN_SLUG_LENGTH - len(slug))
    return slug


def next_free_slug(base: str, taken: Iterable[str]) -> str:
    """``base`` if free, else the first free ``base-1``, ``base-2``, ..."""
    taken = set(taken)
    if base not in taken:
        return base
    counter = 1
    while f"{base}-{counter}" in taken:
        counter += 1
    return f"{base}-{counter}"


def random_suffix_slug(base: str, rng: Optional[random.Random] = None) -> str:
    """``base`` plus a short random alphanumeric suffix"""
    chooser = rng or random
    suffix = "".join(chooser.choice(_SUFFIX_ALPHABET) for _ in range(RANDOM_SUFFIX_LENGTH))
    return f"{base}-{suffix}"


class SlugAllocator:
    """Allocates slugs against the campaigns table"""

    def __init__(
        self,
        repository: CampaignRepositoryProtocol,
        rng: Optional[random.Random] = None,
    ):
        self.repository = repository
        self._rng = rng

    async def allocate(
        self,
        title: str,
        exclude_id: Optional[str] = None,
        executor: Any = None,
        random_suffix: bool = False,
    ) -> str:
        """
        Return a slug for ``title`` that no other campaign uses.

        Args:
            title: Campaign title to derive the slug from
            exclude_id: Campaign being renamed; its own slug does not count
            executor: Transaction-scoped executor for the live-table check
            random_suffix: Use a random suffix instead of the -N sequence
        """
        repo = self.repository.with_executor(executor) if executor is not None else self.repository
        base = slugify(title)

        if random_suffix:
            while True:
                candidate = random_suffix_slug(base, self._rng)
                if not await repo.slug_exists(candidate, exclude_id):
                    return candidate

        taken = await repo.slugs_with_base(base, exclude_id)
        slug = next_free_slug(base, taken)
        if slug != base:
            logger.debug(f"Slug {base} taken, allocated {slug}")
        return slug


__all__ = [
    "slugify",
    "next_free_slug",
    "random_suffix_slug",
    "SlugAllocator",
    "MIN_SLUG_LENGTH",
]
