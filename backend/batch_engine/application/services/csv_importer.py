"""CSV import/export of batch item inputs.

Format:
    topic,keywords,additionalInfo
    Weekend in Lisbon,lisbon|travel|food,"family trip, 3 nights"

The header row is matched case-insensitively against a small set of column
aliases; only the topic column is required. Values use standard delimited-text
quoting (a doubled quote inside a quoted value is a literal quote). Keywords
are separated by ``|`` because keywords may themselves contain commas.
"""

import csv
import io
import logging

from batch_engine.domain.entities import ItemInput
from batch_engine.domain.exceptions import FormatError

logger = logging.getLogger(__name__)

KEYWORD_DELIMITER = "|"

TOPIC_COLUMNS = frozenset({"topic", "subject", "title", "주제"})
KEYWORDS_COLUMNS = frozenset({"keywords", "keyword", "tags", "키워드"})
ADDITIONAL_INFO_COLUMNS = frozenset({
    "additionalinfo",
    "additional_info",
    "additional-info",
    "additional info",
    "notes",
    "추가정보",
})

TEMPLATE_CSV = (
    "topic,keywords,additionalInfo\n"
    "Three days in Jeju,jeju|travel|restaurants,family trip\n"
    "Seongsu cafe tour,seongsu|cafe|dessert,\n"
    "Best seafood near Haeundae,busan|haeundae|seafood,\"local picks, no chains\"\n"
)


def _find_column(headers: list[str], aliases: frozenset[str]) -> int:
    return next((i for i, h in enumerate(headers) if h in aliases), -1)


def _cell(row: list[str], index: int) -> str:
    if index < 0 or index >= len(row):
        return ""
    return row[index].strip()


def split_keywords(raw: str) -> tuple[str, ...]:
    return tuple(k.strip() for k in raw.split(KEYWORD_DELIMITER) if k.strip())


def parse_csv(text: str) -> list[ItemInput]:
    """Parse CSV text into item inputs.

    Raises:
        FormatError: fewer than two lines, no topic column, malformed quoting,
            or no row with a non-empty topic.
    """
    content = text.lstrip("\ufeff").strip()
    try:
        rows = [
            row
            for row in csv.reader(io.StringIO(content), skipinitialspace=True)
            if any(cell.strip() for cell in row)
        ]
    except csv.Error as exc:
        raise FormatError(f"Malformed CSV: {exc}") from exc

    if len(rows) < 2:
        raise FormatError("CSV must contain a header row and at least one data row")

    headers = [h.strip().lower() for h in rows[0]]
    topic_index = _find_column(headers, TOPIC_COLUMNS)
    if topic_index == -1:
        raise FormatError("CSV header must include a topic column")
    keywords_index = _find_column(headers, KEYWORDS_COLUMNS)
    additional_index = _find_column(headers, ADDITIONAL_INFO_COLUMNS)

    inputs: list[ItemInput] = []
    skipped = 0
    for row in rows[1:]:
        topic = _cell(row, topic_index)
        if not topic:
            skipped += 1
            continue
        inputs.append(
            ItemInput(
                topic=topic,
                keywords=split_keywords(_cell(row, keywords_index)),
                additional_info=_cell(row, additional_index),
            )
        )

    if not inputs:
        raise FormatError("CSV contains no rows with a topic")

    logger.debug("Parsed %d CSV rows (%d skipped without topic)", len(inputs), skipped)
    return inputs


def serialize_csv(inputs: list[ItemInput]) -> str:
    """Write inputs in the canonical import layout, readable by parse_csv."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["topic", "keywords", "additionalInfo"])
    for item in inputs:
        writer.writerow([item.topic, KEYWORD_DELIMITER.join(item.keywords), item.additional_info])
    return buffer.getvalue()
