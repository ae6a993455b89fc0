from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .records import PostItem


def dedupe_key(post: PostItem) -> str:
    return f"id:{(post.id or '').strip()}"


@dataclass
class SeenKeys:
    keys: set[str] = field(default_factory=set)

    def has_post(self, post: PostItem) -> bool:
        return dedupe_key(post) in self.keys

    def add_post(self, post: PostItem) -> None:
        self.keys.add(dedupe_key(post))


def first_seen_posts(batches: Iterable[Iterable[PostItem]]) -> list[PostItem]:
    """
    Concatenate post batches in order, dropping any id already seen.

    The earliest occurrence of an id is the one kept.
    """
    seen = SeenKeys()
    out: list[PostItem] = []
    for batch in batches:
        for post in batch:
            if seen.has_post(post):
                continue
            seen.add_post(post)
            out.append(post)
    return out
