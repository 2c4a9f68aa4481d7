from datetime import datetime

from photo_indexer.indexing.titles import synthesize_title
from photo_indexer.models import Location, Tag

TAKEN = datetime(2021, 6, 1)


def _loc(**kwargs):
    return Location(id="x", lat=1.0, lng=1.0, **kwargs)


def test_location_name_wins():
    loc = _loc(name="Eiffel Tower", city="Paris", country="France")
    assert synthesize_title(loc, [], TAKEN) == "Eiffel Tower / France / 2021"


def test_city_beats_tags():
    loc = _loc(city="Lyon", country="France", name="")
    assert synthesize_title(loc, [Tag("cat")], TAKEN) == "Lyon / France / 2021"


def test_county_used_when_no_city():
    loc = _loc(county="Rhône", country="France")
    assert synthesize_title(loc, [], TAKEN) == "Rhône / France / 2021"


def test_first_tag_without_location():
    tags = [Tag("golden retriever"), Tag("grass")]
    assert synthesize_title(None, tags, TAKEN) == "Golden Retriever / 2021"


def test_unknown_fallback():
    assert synthesize_title(None, [], TAKEN) == "Unknown / 2021"


def test_nameless_location_falls_through_to_tags():
    assert synthesize_title(_loc(), [Tag("beach")], TAKEN) == "Beach / 2021"
