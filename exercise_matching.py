"""
Exercise name resolution for imported programs.

Two passes, both case-insensitive:
1. exact name match
2. substring inclusion in either direction (catalog name contains the
   imported name, or the imported name contains the catalog name)

Catalog order decides between several candidates in the same pass.
"""
from typing import Optional, Dict, Any, Iterable


class ExerciseMatcher:
    """Lookup table over the exercise catalog, built once per import."""

    def __init__(self, catalog: Iterable[Dict[str, Any]]):
        self._entries = [
            (entry['id'], (entry.get('name') or '').strip().lower())
            for entry in catalog or []
        ]
        self._exact = {}
        for exercise_id, name in self._entries:
            # First occurrence wins, same as a linear scan
            self._exact.setdefault(name, exercise_id)

    def _resolve(self, name: Optional[str]):
        needle = (name or '').strip().lower()
        if not needle:
            return None, None

        if needle in self._exact:
            return self._exact[needle], 'exact'

        for exercise_id, catalog_name in self._entries:
            if not catalog_name:
                continue
            if needle in catalog_name or catalog_name in needle:
                return exercise_id, 'partial'

        return None, None

    def match(self, name: Optional[str]) -> Optional[str]:
        """Return the catalog id for an imported exercise name, or None."""
        return self._resolve(name)[0]

    def match_kind(self, name: Optional[str]) -> Optional[str]:
        """'exact', 'partial' or None - which pass resolved the name."""
        return self._resolve(name)[1]


def match_exercise(name: Optional[str], catalog: Iterable[Dict[str, Any]]) -> Optional[str]:
    """Resolve one exercise name against a catalog of {'id', 'name'} entries."""
    return ExerciseMatcher(catalog).match(name)
