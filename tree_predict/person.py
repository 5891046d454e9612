"""
person.py - person records of the canonical family tree graph.

This module provides the Person class used by the detection rules. It carries
only what the rules read: names, sex, birth date and family grouping.

Module: tree_predict.person
"""

__all__ = ['Person']

import logging
from datetime import date
from typing import Optional

logger = logging.getLogger(__name__)

class Person:
    """
    Represents a person in a family tree.

    Attributes:
        id (str): Unique person identifier.
        tree_id (str): Tree the person belongs to.
        name (Optional[str]): Primary (Latin-script) full name.
        native_name (Optional[str]): Full name in the native script (e.g. Arabic), if recorded.
        sex (Optional[str]): Sex ('M', 'F', or None when unknown).
        birth_date (Optional[date]): Birth date, if known.
        family_id (Optional[str]): Family group (clan/household) the person is filed under.
        is_deleted (bool): Soft-delete flag; deleted people are invisible to the rules.
    """
    __slots__ = ['id', 'tree_id',
                 'name', 'native_name',
                 'sex', 'birth_date',
                 'family_id', 'is_deleted']
    def __init__(self, id: str, tree_id: str, name: Optional[str] = None,
                 native_name: Optional[str] = None, sex: Optional[str] = None,
                 birth_date: Optional[date] = None, family_id: Optional[str] = None,
                 is_deleted: bool = False):
        self.id : str = id
        self.tree_id : str = tree_id

        self.name : Optional[str] = name
        self.native_name : Optional[str] = native_name

        self.sex : Optional[str] = sex.upper()[:1] if sex else None
        self.birth_date : Optional[date] = birth_date

        self.family_id : Optional[str] = family_id
        self.is_deleted : bool = is_deleted

    def __str__(self) -> str:
        return f"Person(id={self.id}, name={self.name})"

    def __repr__(self) -> str:
        return f"[ {self.id} : {self.name} - {self.sex} - {self.birth_date} ]"

    @property
    def display_name(self) -> str:
        """Native-script name when present, else the primary name, else '?'."""
        if self.native_name and self.native_name.strip():
            return self.native_name
        return self.name or "?"

    @property
    def sex_known(self) -> bool:
        return self.sex in ('M', 'F')
