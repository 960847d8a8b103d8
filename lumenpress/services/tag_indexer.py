"""
Tag indexer.
Counts tag occurrences across public galleries and published posts.
"""
from collections import Counter
from typing import Dict, List

from lumenpress.schemas import Gallery, Post


def build_tag_index(galleries: List[Gallery], posts: List[Post]) -> Dict[str, int]:
    """
    Map each tag to the number of galleries and posts carrying it.

    Tags are case-sensitive: "Travel" and "travel" are counted separately.
    Private galleries and draft posts are skipped. The mapping is ordered by
    count descending, then by tag.
    """
    counts: Counter = Counter()
    for gallery in galleries:
        if gallery.private:
            continue
        counts.update(set(gallery.tags))
    for post in posts:
        if post.draft:
            continue
        counts.update(set(post.tags))

    return dict(sorted(counts.items(), key=lambda item: (-item[1], item[0])))
