from datetime import date
from typing import List, Optional

from tree_predict.date_utils import coerce_to_date

class UnionMember:
    """
    Membership row linking a person to a union.

    Attributes:
        id (str): Row identifier.
        union_id (str): Union the person belongs to.
        person_id (str): Member person.
        role (str): Role within the union (always 'Partner' for predictions).
    """
    __slots__ = ['id', 'union_id', 'person_id', 'role']
    def __init__(self, id: str, union_id: str, person_id: str, role: str = "Partner"):
        self.id = id
        self.union_id = union_id
        self.person_id = person_id
        self.role = role

    def __repr__(self) -> str:
        return f'[ {self.person_id} in {self.union_id} : {self.role} ]'


class Union:
    """Represents a marriage or partnership between two or more persons.

    Attributes:
        id (str): Union identifier.
        tree_id (str): Tree the union belongs to.
        union_type (str): e.g. 'Marriage'.
        start_date (Optional[date]): Start of the union, if known.
        end_date (Optional[date]): End of the union; None means ongoing or unknown.
        members (List[UnionMember]): Membership rows.
    """

    __slots__ = ['id', 'tree_id', 'union_type', 'start_date', 'end_date', 'members']

    def __init__(self, id: str, tree_id: str, union_type: str = "Marriage",
                 start_date: Optional[date] = None, end_date: Optional[date] = None,
                 members: List[UnionMember] = None):
        self.id = id
        self.tree_id = tree_id
        self.union_type = union_type
        self.start_date = start_date
        self.end_date = end_date
        self.members : List[UnionMember] = members if members is not None else []

    def __str__(self) -> str:
        return f"Union(id={self.id}, people=[{', '.join(self.person_ids)}])"

    def __repr__(self) -> str:
        return f'Union(id={self.id}, type={self.union_type}, members={self.members!r})'

    @property
    def person_ids(self) -> List[str]:
        return [m.person_id for m in self.members]

    def covers(self, when) -> bool:
        """True if `when` falls within the union's dates. Requires a start date.

        Dates, datetimes, ISO strings and bare years are compared as dates.
        """
        when = coerce_to_date(when)
        start = coerce_to_date(self.start_date)
        if when is None or start is None:
            return False
        end = coerce_to_date(self.end_date)
        return when >= start and (end is None or when <= end)
