"""Human-readable unique keys derived from free text."""

from __future__ import annotations

import re
from collections.abc import Callable

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    slug = _NON_ALNUM.sub("-", text.lower()).strip("-")
    return slug or "untitled"


def unique_slug(text: str, is_taken: Callable[[str], bool]) -> str:
    """Return `slugify(text)`, suffixed `-1`, `-2`, ... until `is_taken` says no.

    `is_taken` is called once per candidate so it can check the live store.
    """

    base = slugify(text)
    slug = base
    counter = 1
    while is_taken(slug):
        slug = f"{base}-{counter}"
        counter += 1
    return slug
