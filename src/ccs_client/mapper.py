"""
Maps a harvested record onto one MutationBatch.

The mapping is all-or-nothing: every value is encoded and transformed
before the batch is built, so an encoding failure never yields a partial
batch.
"""

from __future__ import annotations

from typing import Optional

from loguru import logger

from .errors import EncodingError
from .models import ClusterConfig, ColumnValue, CrawlRecord, MutationBatch
from .rowkey import derive_row_key
from .transforms import ByteTransform, apply, resolve_transform
from .utils import fourteen_digit_date, microseconds

HTTP_NOT_FOUND = 404
HTTP_GONE = 410
MISSING_STATUSES = frozenset({HTTP_NOT_FOUND, HTTP_GONE})

SEED_SENTINEL = b"\xff"


class RecordMapper:
    """Turns CrawlRecords into MutationBatches for one ClusterConfig.

    Args:
        config: Session configuration (column names, layout, encoding)
        transform: Optional byte transform; defaults to the config's serializer
    """

    def __init__(self, config: ClusterConfig, transform: Optional[ByteTransform] = None):
        self._cfg = config
        self._transform = transform if transform is not None else resolve_transform(
            config.serializer
        )

    @property
    def config(self) -> ClusterConfig:
        return self._cfg

    def should_delete(self, record: CrawlRecord) -> bool:
        return self._cfg.remove_missing_pages and record.http_status in MISSING_STATUSES

    def map(self, record: CrawlRecord) -> MutationBatch:
        row_key = derive_row_key(record.url, self._cfg.encoding)
        timestamp = microseconds(record.fetch_time_ms)

        if self.should_delete(record):
            logger.debug(f"Removing key {row_key!r} (status {record.http_status})")
            return MutationBatch(
                row_key=row_key,
                column_family=self._cfg.column_family,
                timestamp=timestamp,
                delete=True,
            )

        logger.debug(f"Writing {record.url} as {row_key!r}")
        columns = [
            self._column(field, value, timestamp) for field, value in self._fields(record)
        ]
        return MutationBatch(
            row_key=row_key,
            column_family=self._cfg.column_family,
            timestamp=timestamp,
            columns=tuple(columns),
        )

    # --------------------------- internals

    def _fields(self, record: CrawlRecord) -> list[tuple[str, bytes]]:
        out = [
            ("url", self._encode(record.url)),
            ("ip", self._encode(record.remote_ip)),
        ]
        if record.is_seed:
            out.append(("is_seed", SEED_SENTINEL))

        path = (record.path_from_seed or "").strip()
        if path:
            out.append(("path_from_seed", self._encode(path)))

        via = (record.via or "").strip()
        if via:
            out.append(("via", self._encode(via)))

        out.append(("processed_at", self._encode(fourteen_digit_date(record.fetch_time_ms))))

        if record.request:
            out.append(("request", record.request))
        # response body is always written, even when empty
        out.append(("content", record.response))
        return out

    def _column(self, field: str, raw: bytes, timestamp: int) -> ColumnValue:
        names = self._cfg.columns
        if self._cfg.layout == "nested":
            name = self._encode(getattr(names, field))
            super_column = self._encode(names.group_of(field))
        else:
            name = self._encode(names.flat_name(field))
            super_column = None
        try:
            value = apply(self._transform, raw)
        except Exception as e:
            raise EncodingError(f"Cannot serialize column {field}: {type(e).__name__}: {e}") from e
        return ColumnValue(
            name=name,
            value=value,
            timestamp=timestamp,
            super_column=super_column,
        )

    def _encode(self, text: str) -> bytes:
        try:
            return text.encode(self._cfg.encoding)
        except UnicodeError as e:
            raise EncodingError(
                f"Cannot encode {text!r} as {self._cfg.encoding}: {e}"
            ) from e


def map_record(
    record: CrawlRecord, config: ClusterConfig, transform: Optional[ByteTransform] = None
) -> MutationBatch:
    """Convenience wrapper around RecordMapper for one-off mapping."""
    return RecordMapper(config, transform).map(record)
