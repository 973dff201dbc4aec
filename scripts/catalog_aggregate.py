"""
Grouping apps into categories and writing JSON artifacts.
"""

import json
import re
import unicodedata
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List, Dict, Any, Iterable, Tuple

UNCATEGORIZED = 'Uncategorized'


def slugify(name: str) -> str:
    """Lowercase name with every run of non-alphanumerics collapsed to '-'"""
    return re.sub(r'[^a-z0-9]+', '-', name.lower())


def _char_rank(c: str) -> Tuple[int, str]:
    # Punctuation and symbols sort before digits, digits before letters
    if c.isdigit():
        return 1, c
    if c.isalpha():
        return 2, c
    return 0, c


def name_sort_key(name: str) -> Tuple[Tuple[Tuple[int, str], ...], str, str]:
    """Locale-style ordering: letters first, then accents, then lowercase before uppercase"""
    folded = name.casefold()
    base = ''.join(c for c in unicodedata.normalize('NFKD', folded) if not unicodedata.combining(c))
    return tuple(_char_rank(c) for c in base), folded, name.swapcase()


@dataclass
class Category:
    """Apps sharing a category name"""
    name: str
    apps: List[Dict[str, Any]] = field(default_factory=list)
    last_updated: Optional[int] = None

    @property
    def slug(self) -> str:
        return slugify(self.name)

    @property
    def count(self) -> int:
        return len(self.apps)

    @property
    def release_filename(self) -> str:
        return f"category-{self.slug}.json"

    def newest_app_timestamp(self) -> Optional[int]:
        stamps = [app['lastUpdated'] for app in self.apps if app.get('lastUpdated') is not None]
        return max(stamps) if stamps else None

    def to_dict(self, include_apps: bool = True) -> Dict[str, Any]:
        """Category summary; apps are included as they are stored"""
        d: Dict[str, Any] = {
            'name': self.name,
            'slug': self.slug,
            'count': self.count,
        }
        if include_apps:
            d['apps'] = self.apps
        d['lastUpdated'] = self.last_updated
        return d


def group_by_category(apps: Iterable[Dict[str, Any]], default: Optional[str] = None) -> List[Category]:
    """Group apps by their category field, sorting apps and categories by name.

    Apps without a category are dropped unless a default group name is given.
    """
    categories: Dict[str, Category] = {}

    for app in apps:
        name = app.get('category') or default
        if not name:
            continue
        if name not in categories:
            categories[name] = Category(name=name)
        categories[name].apps.append(app)

    for category in categories.values():
        category.apps.sort(key=lambda a: name_sort_key(str(a.get('name', ''))))

    return sorted(categories.values(), key=lambda c: name_sort_key(c.name))


def write_json(path: Path, data: Any) -> None:
    """Write pretty-printed JSON, raising OSError on failure"""
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding='utf-8')
