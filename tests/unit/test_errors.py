"""
Unit tests for RPC error mapping.
"""

import socket

from thrift.transport.TTransport import TTransportException

from ccs_client.errors import (
    InvalidInput,
    RetryableError,
    StoreUnavailable,
    TransportError,
    WriteError,
    map_rpc_error,
)


class TimedOutException(Exception):
    pass


def test_transport_failures_map_to_transport_error():
    for exc in (TTransportException(TTransportException.END_OF_FILE, "eof"), socket.timeout()):
        assert isinstance(map_rpc_error(exc), TransportError)


def test_unknown_failures_map_to_write_error():
    err = map_rpc_error(RuntimeError("InvalidRequestException"))
    assert isinstance(err, WriteError)
    assert not isinstance(err, RetryableError)


def test_named_store_failures_are_retryable():
    err = map_rpc_error(TimedOutException("slow replica"), ("TimedOutException",))
    assert isinstance(err, StoreUnavailable)
    assert isinstance(err, RetryableError)
    assert not isinstance(err, TransportError)


def test_named_store_failures_without_names_are_rejections():
    assert isinstance(map_rpc_error(TimedOutException("slow replica")), WriteError)


def test_client_errors_pass_through():
    err = InvalidInput("bad url")
    assert map_rpc_error(err) is err
