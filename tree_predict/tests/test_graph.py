from datetime import date, datetime

import pytest

from tree_predict.date_utils import coerce_to_date, years_between, within
from tree_predict.errors import NotFoundError, PersistenceConflict
from tree_predict.graph import InMemoryGraph
from tree_predict.model import (
    ConfidenceLevel,
    PredictedRelationship,
    PredictedType,
    PredictionStatus,
)
from tree_predict.person import Person
from tree_predict.union import Union

def test_person_sex_normalized():
    assert Person("p", "T1", sex="male").sex == "M"
    assert Person("p", "T1", sex="f").sex == "F"
    assert not Person("p", "T1").sex_known

def test_person_display_name_prefers_native():
    assert Person("p", "T1", name="Ali", native_name="علي").display_name == "علي"
    assert Person("p", "T1", name="Ali", native_name=" ").display_name == "Ali"
    assert Person("p", "T1").display_name == "?"

def test_union_covers():
    union = Union("u", "T1", start_date=date(1970, 1, 1), end_date=date(1980, 1, 1))
    assert union.covers(date(1975, 1, 1))
    assert not union.covers(date(1985, 1, 1))
    assert not Union("u", "T1").covers(date(1975, 1, 1))

def test_union_covers_mixed_date_types():
    union = Union("u", "T1", start_date="1970-01-01", end_date=datetime(1980, 1, 1, 9, 30))
    assert union.covers(datetime(1975, 5, 5, 12, 0))
    assert union.covers("1979")
    assert not union.covers(datetime(1981, 1, 1))

@pytest.mark.parametrize("value,expected", [
    (1950, date(1950, 7, 1)),
    ("1950", date(1950, 7, 1)),
    ("1950-03-04", date(1950, 3, 4)),
    (datetime(1950, 3, 4, 12, 0), date(1950, 3, 4)),
    ("about 1950", None),
    (None, None),
])
def test_coerce_to_date(value, expected):
    assert coerce_to_date(value) == expected

def test_years_between():
    assert years_between(1950, 1980) == pytest.approx(30, abs=0.01)
    assert years_between(1980, 1950) < 0
    assert years_between(None, 1950) is None
    assert not within(None, 0, 10)

def test_add_person_unknown_tree(graph):
    with pytest.raises(NotFoundError):
        graph.add_person(Person("p", "T9"))

def test_add_parent_child_rejects_duplicates(graph, make_person):
    make_person("A")
    make_person("B")
    graph.add_parent_child("A", "B")
    with pytest.raises(PersistenceConflict):
        graph.add_parent_child("A", "B")
    with pytest.raises(PersistenceConflict):
        graph.add_parent_child("A", "A")
    with pytest.raises(NotFoundError):
        graph.add_parent_child("A", "missing")

def test_deleted_records_hidden(graph, make_person):
    make_person("A")
    ghost = make_person("B")
    graph.add_parent_child("A", "B")
    union = graph.add_union("T1", ["A", "B"])
    ghost.is_deleted = True
    assert [p.id for p in graph.people("T1")] == ["A"]
    assert graph.parent_child_links("T1") == []
    assert graph.unions("T1")[0].person_ids == ["A"]
    graph.delete_union(union.id)
    assert graph.unions("T1") == []
    assert not graph.share_union("A", "B")

def test_links_scoped_to_tree():
    graph = InMemoryGraph()
    graph.add_tree("T1")
    graph.add_tree("T2")
    graph.add_person(Person("A", "T1"))
    graph.add_person(Person("B", "T1"))
    graph.add_person(Person("X", "T2"))
    graph.add_person(Person("Y", "T2"))
    graph.add_parent_child("A", "B")
    graph.add_parent_child("X", "Y")
    assert [(l.parent_id, l.child_id) for l in graph.parent_child_links("T2")] == [("X", "Y")]

def test_add_union_members(graph, make_person):
    make_person("A")
    make_person("B")
    union = graph.add_union("T1", ["A", "B"])
    assert union.person_ids == ["A", "B"]
    assert graph.share_union("B", "A")
    with pytest.raises(PersistenceConflict):
        graph.add_union("T1", ["A", "A"])

def test_prediction_dict_round_trip():
    prediction = PredictedRelationship(
        id="p1", tree_id="T1", rule_id="missing_union", predicted_type=PredictedType.UNION,
        source_person_id="X", target_person_id="Y", confidence=85.0,
        confidence_level=ConfidenceLevel.HIGH, explanation="co-parents",
        status=PredictionStatus.DISMISSED, dismiss_reason="cousins",
    )
    data = prediction.to_dict()
    assert data["predicted_type"] == "union"
    assert data["status"] == "Dismissed"
    assert data["confidence_level"] == "High"
    assert PredictedRelationship.from_dict(data) == prediction
    assert prediction.is_resolved

def test_status_parse():
    assert PredictionStatus.parse("applied") == PredictionStatus.APPLIED
    assert PredictionStatus.parse("NEW") == PredictionStatus.NEW
    assert PredictionStatus.parse("archived") is None

def test_parents_of_skips_deleted_parent(graph, make_person):
    make_person("A")
    ghost = make_person("B")
    make_person("C")
    graph.add_parent_child("A", "C")
    graph.add_parent_child("B", "C")
    ghost.is_deleted = True
    assert graph.parents_of("C") == ["A"]
