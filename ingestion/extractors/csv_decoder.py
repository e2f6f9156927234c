"""
Streaming CSV decoder for uploaded files
"""

import asyncio
import logging
import warnings
from dataclasses import dataclass
from typing import Any, AsyncIterator, BinaryIO, Dict, List, Optional

import pandas as pd
from pandas.errors import EmptyDataError, ParserError, ParserWarning

from core.exceptions import StreamReadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodedRow:
    """A data row and its 1-based position among data rows"""
    row_number: int
    values: Dict[str, str]


class CSVDecoder:
    """
    Decode a byte stream into a header and an ordered stream of rows.

    Reads through pandas in fixed-size chunks so that at most one chunk
    of rows is materialised at a time. Every cell is kept as text; empty
    cells and short rows become empty strings. Header names are stripped
    and lower-cased.

    Rows with more fields than the header are kept and truncated to the
    header width; only I/O errors, undecodable bytes and input the CSV reader
    rejects outright are read failures.

    The decoder is pull-based: rows are only read when the consumer asks
    for the next one, so a consumer busy with a batch holds the decoder
    suspended.
    """

    def __init__(self, stream: BinaryIO, chunk_size: int, source_name: str = "upload"):
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self.stream = stream
        self.chunk_size = chunk_size
        self.source_name = source_name
        self.headers: List[str] = []
        self._reader = None
        self._pending: Optional[pd.DataFrame] = None
        self._row_number = 0
        self._opened = False

    @property
    def rows_decoded(self) -> int:
        return self._row_number

    async def open(self) -> List[str]:
        """
        Parse the header row.

        Returns:
            Normalised header names; empty if the input has no content at all
        """
        if self._opened:
            return self.headers
        self._opened = True

        try:
            self._reader = await asyncio.to_thread(
                pd.read_csv,
                self.stream,
                chunksize=self.chunk_size,
                dtype=str,
                keep_default_na=False,
                # python engine with index_col=False drops surplus trailing cells
                engine="python",
                index_col=False,
                encoding="utf-8-sig",
            )
        except EmptyDataError:
            logger.warning(f"{self.source_name}: input is empty, no header row")
            return self.headers
        except (ParserError, UnicodeDecodeError, OSError, ValueError) as e:
            raise self._stream_error("Failed to read header row", e)

        # The first chunk carries the column names, even when it has no rows
        first = await self._next_chunk()
        if first is None:
            return self.headers

        self.headers = [str(column).strip().lower() for column in first.columns]
        first.columns = self.headers
        self._pending = first

        logger.debug(f"{self.source_name}: headers {self.headers}")
        return self.headers

    async def rows(self) -> AsyncIterator[DecodedRow]:
        """Yield rows in stream order"""
        if not self._opened:
            await self.open()

        chunk = self._pending
        self._pending = None

        while chunk is not None:
            for record in chunk.fillna("").to_dict(orient="records"):
                self._row_number += 1
                yield DecodedRow(
                    row_number=self._row_number,
                    values={key: self._cell(value) for key, value in record.items()}
                )
            chunk = await self._next_chunk()
            if chunk is not None:
                chunk.columns = self.headers

    async def _next_chunk(self) -> Optional[pd.DataFrame]:
        if self._reader is None:
            return None
        try:
            return await asyncio.to_thread(self._read_chunk)
        except (ParserError, UnicodeDecodeError, OSError, ValueError) as e:
            raise self._stream_error("Failed to read upload", e)

    def _read_chunk(self) -> Optional[pd.DataFrame]:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", ParserWarning)
            chunk = next(self._reader, None)

        for warning in caught:
            if issubclass(warning.category, ParserWarning):
                logger.warning(
                    f"{self.source_name}: rows after row {self._row_number} have more "
                    f"fields than the header, extra cells dropped"
                )
            else:
                warnings.warn(warning.message, warning.category)
        return chunk

    def close(self):
        if self._reader is not None:
            self._reader.close()
            self._reader = None
        self._pending = None

    def _stream_error(self, message: str, error: Exception) -> StreamReadError:
        return StreamReadError(
            f"{message}: {error}",
            context={
                "source_name": self.source_name,
                "row_number": self._row_number,
            },
            original_exception=error
        )

    @staticmethod
    def _cell(value: Any) -> str:
        if value is None:
            return ""
        return str(value)
