"""Unit tests for CSV import/export of item inputs."""

import pytest

from batch_engine.application.services.csv_importer import (
    TEMPLATE_CSV,
    parse_csv,
    serialize_csv,
)
from batch_engine.domain.entities import ItemInput
from batch_engine.domain.exceptions import FormatError


def test_parse_basic_rows():
    text = "topic,keywords,additionalInfo\nLisbon,travel|food,3 nights\nPorto,,\n"

    inputs = parse_csv(text)

    assert inputs == [
        ItemInput(topic="Lisbon", keywords=("travel", "food"), additional_info="3 nights"),
        ItemInput(topic="Porto"),
    ]


def test_parse_is_case_insensitive_and_accepts_aliases():
    text = "Keywords,주제,NOTES\nseoul|night,Seoul by night,bring a jacket\n"

    [item] = parse_csv(text)

    assert item.topic == "Seoul by night"
    assert item.keywords == ("seoul", "night")
    assert item.additional_info == "bring a jacket"


def test_parse_handles_quotes_and_embedded_commas():
    text = 'topic,additionalInfo\n"Coffee, tea and ""more""","a, b"\n'

    [item] = parse_csv(text)

    assert item.topic == 'Coffee, tea and "more"'
    assert item.additional_info == "a, b"


def test_parse_strips_bom_and_skips_blank_and_topicless_rows():
    text = "\ufefftopic,keywords\n\nFirst,a\n,orphan\n   \nSecond,b\n"

    inputs = parse_csv(text)

    assert [i.topic for i in inputs] == ["First", "Second"]


def test_parse_requires_topic_column():
    with pytest.raises(FormatError, match="topic"):
        parse_csv("title_text,keywords\nfoo,bar\n")


@pytest.mark.parametrize("text", ["", "topic,keywords", "topic\n,\n , \n"])
def test_parse_rejects_empty_input(text: str):
    with pytest.raises(FormatError):
        parse_csv(text)


def test_template_parses():
    inputs = parse_csv(TEMPLATE_CSV)
    assert len(inputs) == 3
    assert inputs[2].additional_info == "local picks, no chains"


def test_serialize_then_parse_preserves_inputs():
    inputs = [
        ItemInput(topic='Quotes "inside", commas', keywords=("a", "b c"), additional_info="x,y"),
        ItemInput(topic="Plain"),
    ]

    assert parse_csv(serialize_csv(inputs)) == inputs
