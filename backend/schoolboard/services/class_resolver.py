from __future__ import annotations

import logging
from typing import Iterable, TypeVar

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from schoolboard.core.config import get_settings
from schoolboard.models.school_class import SchoolClass

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunked(items: list[T], size: int) -> list[list[T]]:
    size = max(1, size)
    return [items[index : index + size] for index in range(0, len(items), size)]


def class_refs_for(school_class: SchoolClass) -> list[str]:
    """Every value a timetable entry may store to point at this class."""
    refs = [school_class.id]
    if school_class.class_id and school_class.class_id != school_class.id:
        refs.append(school_class.class_id)
    return refs


def resolve_classes(db: Session, refs: Iterable[str]) -> dict[str, SchoolClass]:
    """Map raw class references (business id or document id) to class rows.

    Business ids are tried first; whatever is left is looked up by document
    id. Each found class is keyed under both of its identifiers.
    """
    raw_refs = list(dict.fromkeys(ref for ref in refs if ref))
    if not raw_refs:
        return {}
    batch_limit = get_settings().store_batch_limit

    resolved: dict[str, SchoolClass] = {}
    for batch in chunked(raw_refs, batch_limit):
        for school_class in db.execute(select(SchoolClass).where(SchoolClass.class_id.in_(batch))).scalars():
            for key in class_refs_for(school_class):
                resolved[key] = school_class

    unresolved = [ref for ref in raw_refs if ref not in resolved]
    for batch in chunked(unresolved, batch_limit):
        for school_class in db.execute(select(SchoolClass).where(SchoolClass.id.in_(batch))).scalars():
            for key in class_refs_for(school_class):
                resolved[key] = school_class

    missing = [ref for ref in raw_refs if ref not in resolved]
    if missing:
        logger.warning("Unresolved class references: %s", ", ".join(missing))
    return resolved


def resolve_class_labels(db: Session, refs: Iterable[str]) -> dict[str, str]:
    raw_refs = list(dict.fromkeys(ref for ref in refs if ref))
    resolved = resolve_classes(db, raw_refs)
    labels = {key: school_class.label for key, school_class in resolved.items()}
    for ref in raw_refs:
        # Unknown references are shown as-is.
        labels.setdefault(ref, ref)
    return labels


def find_class(db: Session, ref: str) -> SchoolClass | None:
    return db.execute(
        select(SchoolClass).where(or_(SchoolClass.id == ref, SchoolClass.class_id == ref)).limit(1)
    ).scalar_one_or_none()
