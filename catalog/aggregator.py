"""
Style catalog aggregation.

Merges the three independently fetched style datasets (definitions, previews,
category membership) into an ordered list of sections. Every item lands in
exactly one section: Favorites first, then "new" and "featured", then the
remaining categories alphabetically, then Uncategorized for leftovers.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set

FAVORITES_SECTION = "Favorites"
UNCATEGORIZED_SECTION = "Uncategorized"
PRIORITY_CATEGORIES = ("new", "featured")


@dataclass
class CatalogItem:
    """A named style with its attribute bag and optional preview reference."""
    name: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    preview: Optional[Any] = None

    @property
    def key(self) -> str:
        """Case-insensitive identity."""
        return self.name.lower()

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, **self.attributes, "preview": self.preview}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CatalogItem":
        attributes = {k: v for k, v in data.items() if k not in ("name", "preview")}
        return cls(name=data["name"], attributes=attributes, preview=data.get("preview"))


@dataclass
class CategorySection:
    """One named, ordered section of the presentation."""
    name: str
    items: List[CatalogItem]

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "items": [item.to_dict() for item in self.items]}


def merge_items(
    items_map: Mapping[str, Any],
    previews_map: Optional[Mapping[str, Any]] = None,
) -> List[CatalogItem]:
    """
    Build catalog items from the raw styles document.

    Names are deduplicated case-insensitively (first seen wins), each item
    gets its preview (or None), and the result is sorted by name.
    """
    previews_map = previews_map or {}
    seen: Set[str] = set()
    items: List[CatalogItem] = []

    for name, data in items_map.items():
        if name.lower() in seen:
            continue
        seen.add(name.lower())
        attributes = dict(data) if isinstance(data, Mapping) else {"value": data}
        attributes.pop("name", None)
        attributes.pop("preview", None)
        items.append(CatalogItem(name=name, attributes=attributes, preview=previews_map.get(name)))

    items.sort(key=lambda item: (item.name.casefold(), item.name))
    return items


def process_categories(
    raw_categories: Mapping[str, Sequence[str]],
    item_names: Iterable[str],
) -> Dict[str, List[str]]:
    """
    Strip category-to-category references out of the membership lists.

    A member is kept only if it names a known item and does not name any
    category (both compared case-insensitively). Categories left without
    members are dropped.
    """
    known_items = {name.lower() for name in item_names}
    category_names = {name.lower() for name in raw_categories}

    processed: Dict[str, List[str]] = {}
    for category_name, members in raw_categories.items():
        if not isinstance(members, (list, tuple)):
            continue
        leaf_members = [
            member for member in members
            if isinstance(member, str)
            and member.lower() in known_items
            and member.lower() not in category_names
        ]
        if leaf_members:
            processed[category_name] = leaf_members

    return processed


def order_categories(category_names: Iterable[str]) -> List[str]:
    """
    "new" and "featured" first (when present), then the rest alphabetically.
    """
    names = list(category_names)
    ordered: List[str] = []
    for priority in PRIORITY_CATEGORIES:
        match = next((name for name in names if name.lower() == priority), None)
        if match is not None:
            ordered.append(match)
    ordered.extend(sorted(name for name in names if name not in ordered))
    return ordered


def build_sections(
    all_items: Sequence[CatalogItem],
    categories: Mapping[str, Sequence[str]],
    favorite_names: Sequence[str] = (),
) -> List[CategorySection]:
    """
    Build the ordered, deduplicated section list.

    Args:
        all_items: Catalog items, already deduplicated
        categories: Processed category -> member names
        favorite_names: User favorites (any case)

    Returns:
        Sections partitioning all_items
    """
    by_key = {item.key: item for item in all_items}
    shown: Set[str] = set()
    sections: List[CategorySection] = []

    if favorite_names:
        favorites = {name.lower() for name in favorite_names}
        favorite_items = [item for item in all_items if item.key in favorites]
        if favorite_items:
            shown.update(item.key for item in favorite_items)
            sections.append(CategorySection(FAVORITES_SECTION, favorite_items))

    for category_name in order_categories(categories):
        members: List[CatalogItem] = []
        for member in categories.get(category_name, ()):
            item = by_key.get(member.lower())
            if item is None or item.key in shown:
                continue
            shown.add(item.key)
            members.append(item)
        if members:
            sections.append(CategorySection(category_name, members))

    leftovers = [item for item in all_items if item.key not in shown]
    if leftovers:
        sections.append(CategorySection(UNCATEGORIZED_SECTION, leftovers))

    return sections
