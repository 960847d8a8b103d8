"""
Navigation builder.
Turns the flat gallery list into a tree using the slash-separated slug path.
"""
from typing import Dict, List, Optional, Sequence

from lumenpress.schemas import Gallery, NavNode, ParentMetadata
from lumenpress.utils.text import folder_name_to_title, order_key


def _sort_tree(nodes: List[NavNode]) -> List[NavNode]:
    ordered = sorted(nodes, key=lambda node: order_key(node.order))
    for node in ordered:
        node.children = _sort_tree(node.children)
    return ordered


def build_navigation(
    galleries: Sequence[Gallery],
    parents: Optional[Sequence[ParentMetadata]] = None,
) -> List[NavNode]:
    """
    Build an ordered navigation tree.

    Args:
        galleries: Galleries to show, in scan order (private ones already removed)
        parents: Title/order settings for folders that only group other galleries

    Returns:
        Root nodes. Siblings are sorted by `order` ascending; nodes without an
        order follow, keeping their input order. Missing intermediate levels
        become virtual nodes.
    """
    parent_meta: Dict[str, ParentMetadata] = {p.slug: p for p in parents or []}
    nodes: Dict[str, NavNode] = {}
    roots: List[NavNode] = []

    def attach(node: NavNode) -> None:
        parent_slug, _, _ = node.slug.rpartition("/")
        if parent_slug:
            ensure(parent_slug).children.append(node)
        else:
            roots.append(node)

    def ensure(slug: str) -> NavNode:
        node = nodes.get(slug)
        if node is None:
            meta = parent_meta.get(slug)
            segment = slug.rsplit("/", 1)[-1]
            node = NavNode(
                slug=slug,
                title=meta.title if meta and meta.title else folder_name_to_title(segment),
                order=meta.order if meta else None,
                virtual=True,
            )
            nodes[slug] = node
            attach(node)
        return node

    for gallery in galleries:
        existing = nodes.get(gallery.slug)
        if existing is not None:
            # A child was seen first; upgrade its placeholder in place
            existing.title = gallery.title
            existing.order = gallery.order
            existing.virtual = False
            continue
        node = NavNode(slug=gallery.slug, title=gallery.title, order=gallery.order)
        nodes[gallery.slug] = node
        attach(node)

    return _sort_tree(roots)
