"""
graph.py - access to the canonical family tree graph.

The engine reads persons, unions and parent-child edges through the
GraphRepository protocol and writes accepted predictions back through it.
InMemoryGraph is a thread-safe implementation used by tests and by hosts
that keep the tree in memory.
"""
from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Sequence, Set

from tree_predict.errors import NotFoundError, PersistenceConflict
from tree_predict.model import utc_now
from tree_predict.person import Person
from tree_predict.union import Union, UnionMember

logger = logging.getLogger(__name__)

BIOLOGICAL = "Biological"
MARRIAGE = "Marriage"


@dataclass
class ParentChild:
    """Directed edge from a parent to a child."""
    id: str
    parent_id: str
    child_id: str
    relationship_type: str = BIOLOGICAL
    created_at: datetime = field(default_factory=utc_now)
    is_deleted: bool = False


class GraphRepository(Protocol):
    """Read/write access to the canonical graph used by rules and the service."""

    def tree_exists(self, tree_id: str) -> bool: ...

    def get_person(self, person_id: str) -> Optional[Person]: ...

    def people(self, tree_id: str) -> List[Person]: ...

    def unions(self, tree_id: str) -> List[Union]: ...

    def parent_child_links(self, tree_id: str) -> List[ParentChild]: ...

    def parents_of(self, person_id: str, relationship_type: Optional[str] = None) -> List[str]: ...

    def share_union(self, person_a: str, person_b: str) -> bool: ...

    def add_parent_child(self, parent_id: str, child_id: str, relationship_type: str = BIOLOGICAL) -> ParentChild: ...

    def add_union(self, tree_id: str, partner_ids: Sequence[str], union_type: str = MARRIAGE) -> Union: ...


def _new_id() -> str:
    return str(uuid.uuid4())


class InMemoryGraph:
    """
    In-memory canonical graph.

    Deleted persons, unions and edges are kept but never returned by the
    read methods. Writes are atomic under a single lock.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._trees: Set[str] = set()
        self._people: Dict[str, Person] = {}
        self._unions: Dict[str, Union] = {}
        self._deleted_unions: Set[str] = set()
        self._links: Dict[str, ParentChild] = {}

    # ---------- setup helpers ----------

    def add_tree(self, tree_id: str) -> str:
        with self._lock:
            self._trees.add(tree_id)
        return tree_id

    def add_person(self, person: Person) -> Person:
        with self._lock:
            if person.tree_id not in self._trees:
                raise NotFoundError(f"Tree {person.tree_id} not found")
            if person.id in self._people:
                raise PersistenceConflict(f"Person {person.id} already exists")
            self._people[person.id] = person
        return person

    def delete_union(self, union_id: str) -> None:
        with self._lock:
            self._deleted_unions.add(union_id)

    # ---------- reads ----------

    def tree_exists(self, tree_id: str) -> bool:
        with self._lock:
            return tree_id in self._trees

    def get_person(self, person_id: str) -> Optional[Person]:
        with self._lock:
            person = self._people.get(person_id)
        if person is None or person.is_deleted:
            return None
        return person

    def people(self, tree_id: str) -> List[Person]:
        with self._lock:
            return [p for p in self._people.values() if p.tree_id == tree_id and not p.is_deleted]

    def unions(self, tree_id: str) -> List[Union]:
        with self._lock:
            result = []
            for union in self._unions.values():
                if union.tree_id != tree_id or union.id in self._deleted_unions:
                    continue
                members = [m for m in union.members if self._is_live(m.person_id)]
                result.append(Union(union.id, union.tree_id, union.union_type,
                                    union.start_date, union.end_date, members))
            return result

    def parent_child_links(self, tree_id: str) -> List[ParentChild]:
        """Live edges whose parent belongs to the tree and whose child is live."""
        with self._lock:
            return [
                link for link in self._links.values()
                if not link.is_deleted
                and self._is_live(link.parent_id) and self._is_live(link.child_id)
                and self._people[link.parent_id].tree_id == tree_id
            ]

    def parents_of(self, person_id: str, relationship_type: Optional[str] = None) -> List[str]:
        with self._lock:
            return [l.parent_id for l in self._links.values()
                    if l.child_id == person_id and not l.is_deleted and self._is_live(l.parent_id)
                    and (relationship_type is None or l.relationship_type == relationship_type)]

    def share_union(self, person_a: str, person_b: str) -> bool:
        with self._lock:
            for union in self._unions.values():
                if union.id in self._deleted_unions:
                    continue
                ids = union.person_ids
                if person_a in ids and person_b in ids:
                    return True
        return False

    # ---------- writes ----------

    def add_parent_child(self, parent_id: str, child_id: str, relationship_type: str = BIOLOGICAL) -> ParentChild:
        with self._lock:
            for pid in (parent_id, child_id):
                if not self._is_live(pid):
                    raise NotFoundError(f"Person {pid} not found")
            if parent_id == child_id:
                raise PersistenceConflict(f"Person {parent_id} cannot be their own parent")
            for link in self._links.values():
                if link.parent_id == parent_id and link.child_id == child_id and not link.is_deleted:
                    raise PersistenceConflict(
                        f"Parent-child link {parent_id} -> {child_id} already exists")
            link = ParentChild(id=_new_id(), parent_id=parent_id, child_id=child_id,
                               relationship_type=relationship_type)
            self._links[link.id] = link
        logger.debug(f"Added parent-child link {link.id}: {parent_id} -> {child_id}")
        return link

    def add_union(self, tree_id: str, partner_ids: Sequence[str], union_type: str = MARRIAGE) -> Union:
        with self._lock:
            if tree_id not in self._trees:
                raise NotFoundError(f"Tree {tree_id} not found")
            if len(set(partner_ids)) != len(partner_ids):
                raise PersistenceConflict("A union needs distinct partners")
            for pid in partner_ids:
                if not self._is_live(pid):
                    raise NotFoundError(f"Person {pid} not found")
            union = Union(id=_new_id(), tree_id=tree_id, union_type=union_type)
            union.members = [UnionMember(id=_new_id(), union_id=union.id, person_id=pid, role="Partner")
                             for pid in partner_ids]
            self._unions[union.id] = union
        logger.debug(f"Added union {union.id} for {', '.join(partner_ids)}")
        return union

    def add_existing_union(self, union: Union) -> Union:
        """Insert a fully built union (tree setup)."""
        with self._lock:
            if union.tree_id not in self._trees:
                raise NotFoundError(f"Tree {union.tree_id} not found")
            if union.id in self._unions:
                raise PersistenceConflict(f"Union {union.id} already exists")
            self._unions[union.id] = union
        return union

    # ---------- inspection ----------

    def all_links(self) -> List[ParentChild]:
        with self._lock:
            return [l for l in self._links.values() if not l.is_deleted]

    def all_unions(self) -> List[Union]:
        with self._lock:
            return [u for u in self._unions.values() if u.id not in self._deleted_unions]

    def _is_live(self, person_id: str) -> bool:
        person = self._people.get(person_id)
        return person is not None and not person.is_deleted
