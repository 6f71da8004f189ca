"""CSV decoding for pricing uploads.

Reads the upload in pandas chunks with every column kept as text, so the
validator sees exactly what the operator typed. Header names are matched
trimmed and case-insensitive.
"""

from __future__ import annotations

import csv
import logging
import warnings
from collections.abc import Iterator
from typing import BinaryIO

import pandas as pd
from pandas.errors import EmptyDataError, ParserError, ParserWarning

from tourpricing.errors import CSVFormatError
from tourpricing.ingestion.types import RawRecord
from tourpricing.ingestion.validator import COLUMNS

logger = logging.getLogger(__name__)

_CANONICAL = {name.lower(): name for name in COLUMNS}

# Header is line 1, so data row i (0-based) is line i + 2
FIRST_DATA_ROW = 2


def canonical_column(header: object) -> str:
    name = str(header).strip()
    return _CANONICAL.get(name.lower(), name)


def count_data_rows(stream: BinaryIO) -> int | None:
    """Pre-scan a seekable stream for a row estimate.

    Counts non-blank lines minus the header and rewinds. Returns None when
    the stream cannot be rewound.
    """
    seekable = getattr(stream, "seekable", None)
    if seekable is None or not seekable():
        return None

    start = stream.tell()
    try:
        lines = sum(1 for line in stream if line.strip())
    finally:
        stream.seek(start)
    return max(0, lines - 1)


def _next_chunk(chunks: Iterator[pd.DataFrame]) -> pd.DataFrame | None:
    with warnings.catch_warnings():
        # Fields past the header width are dropped with a ParserWarning
        warnings.simplefilter("ignore", ParserWarning)
        return next(chunks, None)


def read_records(stream: BinaryIO, chunk_size: int = 1000) -> Iterator[RawRecord]:
    """Yield one RawRecord per CSV data line, in file order.

    Fields beyond the header's width are ignored, including a trailing
    delimiter on every line. Rows are numbered by position, never by
    whatever pandas would pick as an index.

    Raises:
        CSVFormatError: If the stream is not decodable CSV text
    """
    try:
        reader = pd.read_csv(
            stream,
            engine="python",
            index_col=False,
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
            chunksize=chunk_size,
            encoding="utf-8-sig",
        )
    except EmptyDataError:
        logger.info("Empty upload, no records")
        return
    except (ParserError, UnicodeDecodeError, csv.Error) as e:
        raise CSVFormatError(f"Unreadable CSV: {e}") from e

    position = 0
    try:
        with reader:
            while True:
                chunk = _next_chunk(reader)
                if chunk is None:
                    break
                columns = [canonical_column(col) for col in chunk.columns]
                for values in chunk.itertuples(index=False, name=None):
                    yield RawRecord(
                        row_number=position + FIRST_DATA_ROW,
                        values={
                            col: value if isinstance(value, str) else ""
                            for col, value in zip(columns, values)
                        },
                    )
                    position += 1
    except (ParserError, UnicodeDecodeError, csv.Error) as e:
        raise CSVFormatError(f"Unreadable CSV: {e}") from e
