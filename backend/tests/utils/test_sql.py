"""LIKE escaping for search filters."""

import pytest
from sqlalchemy.dialects import sqlite

from crackzone.models import Team
from crackzone.utils.sql import escape_like_pattern, icontains


@pytest.mark.parametrize(
    ("term", "escaped"),
    [
        ("normaltext", "normaltext"),
        ("", ""),
        ("100%", "100\\%"),
        ("test_user", "test\\_user"),
        ("path\\to", "path\\\\to"),
        ("100%_off", "100\\%\\_off"),
    ],
)
def test_escape_like_pattern(term, escaped):
    assert escape_like_pattern(term) == escaped


def test_icontains_lowercases_and_escapes():
    clause = icontains(Team.name, "Top_10%")
    compiled = clause.compile(dialect=sqlite.dialect())

    assert "lower(teams.name) LIKE" in str(compiled)
    assert "ESCAPE" in str(compiled)
    assert list(compiled.params.values()) == ["%top\\_10\\%%"]
