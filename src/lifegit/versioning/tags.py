"""Milestone tags and their association with life versions."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, List, Optional

from ..errors import NotFoundError, ValidationError
from ..memory.schema import Tag, TagType
from ..memory.store import MemoryStore

LOGGER = logging.getLogger(__name__)


class TagManager:
    def __init__(self, store: MemoryStore) -> None:
        self._store = store

    def get_tag(self, tag_id: str) -> Tag:
        tag = self._store.get_tag(tag_id)
        if tag is None:
            raise NotFoundError("tag", tag_id)
        return tag

    def create_tag(
        self,
        owner_user_id: str,
        title: str,
        tag_type: TagType,
        *,
        description: str = "",
        associated_version: Optional[str] = None,
        is_important: bool = False,
    ) -> Tag:
        if not title.strip():
            raise ValidationError("Tag title must not be empty")
        tag = Tag(
            title=title.strip(),
            description=description.strip(),
            type=tag_type,
            associated_version=(associated_version or "").strip() or None,
            is_important=is_important,
            owner_user_id=owner_user_id,
        )
        self._store.create_tag(tag)
        LOGGER.debug("Created %s tag %s", tag_type.value, tag.id)
        return tag

    def update_tag(
        self,
        tag: Tag,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        tag_type: Optional[TagType] = None,
        is_important: Optional[bool] = None,
    ) -> Tag:
        if title is not None:
            if not title.strip():
                raise ValidationError("Tag title must not be empty")
            tag.title = title.strip()
        if description is not None:
            tag.description = description.strip()
        if tag_type is not None:
            tag.type = tag_type
        if is_important is not None:
            tag.is_important = is_important
        self._store.update_tag(tag)
        return tag

    def delete_tag(self, tag_id: str) -> None:
        self._store.delete_tag(tag_id)

    def associate_with_version(self, tag_id: str, version: str) -> Tag:
        if not version or not version.strip():
            raise ValidationError("Version must not be empty")
        tag = self.get_tag(tag_id)
        tag.associated_version = version.strip()
        self._store.update_tag(tag)
        LOGGER.info("Associated tag %s with version %s", tag_id, tag.associated_version)
        return tag

    def version_associated_tags(self, owner_user_id: str) -> List[Tag]:
        return self._store.list_tags(owner_user_id=owner_user_id, version_associated=True)

    def filter_tags(
        self,
        owner_user_id: str,
        *,
        tag_type: Optional[TagType] = None,
        text: Optional[str] = None,
    ) -> List[Tag]:
        return self._store.list_tags(
            owner_user_id=owner_user_id,
            tag_type=tag_type,
            text=text.strip() if text else None,
        )

    def count_by_type(self, owner_user_id: str) -> Dict[TagType, int]:
        counts = Counter(tag.type for tag in self._store.list_tags(owner_user_id=owner_user_id))
        return {tag_type: counts.get(tag_type, 0) for tag_type in TagType}


__all__ = ["TagManager"]
