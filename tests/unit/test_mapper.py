"""
Unit tests for RecordMapper.
"""

import gzip

import pytest

from ccs_client.errors import EncodingError, InvalidInput
from ccs_client.mapper import SEED_SENTINEL, RecordMapper, map_record
from ccs_client.models import ClusterConfig, ColumnNames


def _names(batch):
    return [c.name.decode() for c in batch.columns]


def _by_name(batch):
    return {c.name.decode(): c.value for c in batch.columns}


@pytest.fixture
def cfg():
    return ClusterConfig(seeds="h1", keyspace="crawler")


class TestWriteBatch:
    def test_scenario_ok_page_without_seed(self, cfg, make_record):
        """200 page, not a seed: url, ip and body present; no seed flag."""
        batch = map_record(make_record(), cfg)

        assert not batch.delete
        assert batch.row_key == b"com.example.www/a"
        assert batch.column_family == "crawl"
        names = _names(batch)
        assert "curi:url" in names
        assert "curi:ip" in names
        assert "content:raw_data" in names
        assert "curi:is-seed" not in names

    def test_column_order_and_values(self, cfg, make_record):
        batch = map_record(make_record(is_seed=True), cfg)

        assert _names(batch) == [
            "curi:url",
            "curi:ip",
            "curi:is-seed",
            "curi:path-from-seed",
            "curi:via",
            "curi:processed_at",
            "curi:request",
            "content:raw_data",
        ]
        values = _by_name(batch)
        assert values["curi:url"] == b"http://www.example.com/a"
        assert values["curi:is-seed"] == SEED_SENTINEL
        assert values["curi:processed_at"] == b"20231114221320"
        assert values["content:raw_data"] == b"HTTP/1.1 200 OK\r\n\r\nhello"

    def test_every_column_shares_fetch_time_in_microseconds(self, cfg, make_record):
        batch = map_record(make_record(fetch_time_ms=1_000), cfg)
        assert batch.timestamp == 1_000_000
        assert {c.timestamp for c in batch.columns} == {1_000_000}

    def test_empty_body_still_written_and_empty_request_omitted(self, cfg, make_record):
        batch = map_record(make_record(request=b"", response=b""), cfg)
        values = _by_name(batch)
        assert values["content:raw_data"] == b""
        assert "curi:request" not in values

    @pytest.mark.parametrize("blank", [None, "", "   "])
    def test_blank_path_and_via_omitted(self, cfg, make_record, blank):
        batch = map_record(make_record(path_from_seed=blank, via=blank), cfg)
        names = _names(batch)
        assert "curi:path-from-seed" not in names
        assert "curi:via" not in names

    def test_path_and_via_are_trimmed(self, cfg, make_record):
        batch = map_record(make_record(path_from_seed="  LX ", via=" http://a.com/ "), cfg)
        values = _by_name(batch)
        assert values["curi:path-from-seed"] == b"LX"
        assert values["curi:via"] == b"http://a.com/"

    def test_custom_column_names(self, make_record):
        cfg = ClusterConfig(
            seeds="h1",
            keyspace="crawler",
            column_family="pages",
            columns=ColumnNames(curi_prefix="meta", content="body"),
        )
        batch = map_record(make_record(), cfg)
        assert batch.column_family == "pages"
        assert "meta:url" in _names(batch)
        assert "content:body" in _names(batch)


class TestNestedLayout:
    def test_columns_carry_super_column_group(self, make_record):
        cfg = ClusterConfig(seeds="h1", keyspace="crawler", layout="nested")
        batch = map_record(make_record(), cfg)

        groups = {c.name.decode(): c.super_column for c in batch.columns}
        assert groups["url"] == b"curi"
        assert groups["raw_data"] == b"content"


class TestDelete:
    @pytest.mark.parametrize("status", [404, 410])
    def test_missing_page_becomes_delete(self, make_record, status):
        cfg = ClusterConfig(seeds="h1", keyspace="crawler", remove_missing_pages=True)
        batch = map_record(make_record(http_status=status), cfg)

        assert batch.delete
        assert batch.columns == ()
        assert batch.row_key == b"com.example.www/a"

    def test_missing_page_written_when_policy_disabled(self, cfg, make_record):
        batch = map_record(make_record(http_status=404), cfg)
        assert not batch.delete
        assert batch.columns

    def test_other_statuses_never_delete(self, make_record):
        cfg = ClusterConfig(seeds="h1", keyspace="crawler", remove_missing_pages=True)
        for status in (200, 301, 500):
            batch = map_record(make_record(http_status=status), cfg)
            assert not batch.delete


class TestTransform:
    def test_explicit_transform_applies_to_every_value(self, cfg, make_record):
        batch = RecordMapper(cfg, transform=lambda b: b"x" + b).map(make_record())
        assert all(c.value.startswith(b"x") for c in batch.columns)

    def test_gzip_serializer_from_config(self, make_record):
        cfg = ClusterConfig(seeds="h1", keyspace="crawler", serializer="gzip")
        batch = map_record(make_record(), cfg)
        body = _by_name(batch)["content:raw_data"]
        assert gzip.decompress(body) == b"HTTP/1.1 200 OK\r\n\r\nhello"


class TestFailures:
    def test_unencodable_field_raises_without_partial_batch(self, make_record):
        cfg = ClusterConfig(seeds="h1", keyspace="crawler", encoding="latin-1")
        mapper = RecordMapper(cfg)
        with pytest.raises(EncodingError):
            mapper.map(make_record(url="http://example.com/", via="http://例え.jp/"))

    def test_malformed_url_raises_invalid_input(self, cfg, make_record):
        with pytest.raises(InvalidInput):
            map_record(make_record(url="not a url"), cfg)

    def test_failing_transform_raises_encoding_error(self, cfg, make_record):
        def broken(data: bytes) -> bytes:
            raise ValueError("transform failed")

        with pytest.raises(EncodingError):
            RecordMapper(cfg, transform=broken).map(make_record())

    def test_unrepresentable_fetch_time_raises_invalid_input(self, cfg, make_record):
        # model_copy skips validation, as a record built elsewhere might
        record = make_record().model_copy(update={"fetch_time_ms": 10**17})
        with pytest.raises(InvalidInput):
            map_record(record, cfg)
