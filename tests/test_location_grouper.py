from hypothesis import given, settings, strategies as st

from data_preparation.location_grouper import group_assets_by_location, location_query, make_location_key
from models import Asset
from fakes import make_assets


def test_location_key_is_case_and_whitespace_insensitive():
    assert make_location_key('  Austin ', 'TX') == make_location_key('austin', 'tx') == 'austin, tx'
    assert make_location_key('New   York', 'NY') == 'new york, ny'
    assert location_query(' New  York ', 'NY') == 'New York, NY'


def test_groups_in_first_occurrence_order():
    assets = make_assets(
        ('S1', 'Dallas', 'TX'),
        ('S2', 'Austin', 'TX'),
        ('S3', 'dallas', 'tx'),
        ('S4', 'Austin', 'TX'),
    )
    grouped = group_assets_by_location(assets)
    assert list(grouped) == ['dallas, tx', 'austin, tx']
    assert [a.name for a in grouped['dallas, tx'].assets] == ['S1', 'S3']
    # first spelling wins for the lookup
    assert grouped['dallas, tx'].city == 'Dallas'


def test_empty_input():
    assert group_assets_by_location([]) == {}


@given(st.lists(
    st.tuples(
        st.text(min_size=1, max_size=8),
        st.sampled_from(['Austin', 'austin ', 'Dallas', 'Houston']),
        st.sampled_from(['TX', 'tx', ' TX']),
    ),
    max_size=40,
))
@settings(max_examples=50, deadline=None)
def test_grouping_is_a_partition(rows):
    assets = [Asset(name=f"{i}-{n}", city=c, state=s) for i, (n, c, s) in enumerate(rows)]
    grouped = group_assets_by_location(assets)
    seen = [a for g in grouped.values() for a in g.assets]
    assert sorted(seen, key=lambda a: a.name) == sorted(assets, key=lambda a: a.name)
    assert len(grouped) == len({make_location_key(a.city, a.state) for a in assets})
