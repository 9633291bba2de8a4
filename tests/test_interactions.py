from __future__ import annotations

import pytest

from distrack.errors import InvalidInput
from distrack.interactions import CustomId, ticket_custom_id


def test_submit_id_carries_category():
    raw = ticket_custom_id('submit', 'bug_report')

    assert raw == "ticket:submit:bug_report"
    assert CustomId.parse(raw).category == "bug_report"


@pytest.mark.parametrize("raw", [
    "ticket",
    "ticket:explode",
    "warn:create",
    "ticket:submit",
    "ticket:submit:not_a_category",
    "ticket:close:extra",
])
def test_parse_rejects_unknown_or_malformed(raw):
    with pytest.raises(InvalidInput):
        CustomId.parse(raw)


def test_category_only_on_submit():
    with pytest.raises(InvalidInput):
        _ = CustomId.parse("ticket:close").category


def test_builder_rejects_bad_ids():
    with pytest.raises(InvalidInput):
        ticket_custom_id('submit', 'nope')
