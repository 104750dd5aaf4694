"""Tests for building network records from a devtools log."""

import json

import pytest

from page_budget.network_records import (
    RecordParsingError,
    find_main_document_url,
    load_devtools_log,
    records_from_devtools_log,
)


def request_will_be_sent(request_id, url, resource_type=None, redirect_response=None):
    params = {"requestId": request_id, "request": {"url": url, "method": "GET"}}
    if resource_type:
        params["type"] = resource_type
    if redirect_response:
        params["redirectResponse"] = redirect_response
    return {"method": "Network.requestWillBeSent", "params": params}


def response_received(request_id, protocol="h2", status=200, encoded=100, resource_type=None):
    params = {
        "requestId": request_id,
        "response": {
            "status": status,
            "protocol": protocol,
            "mimeType": "text/html",
            "encodedDataLength": encoded,
        },
    }
    if resource_type:
        params["type"] = resource_type
    return {"method": "Network.responseReceived", "params": params}


def data_received(request_id, data_length, encoded_length=-1):
    return {"method": "Network.dataReceived", "params": {
        "requestId": request_id, "dataLength": data_length, "encodedDataLength": encoded_length,
    }}


def loading_finished(request_id, encoded):
    return {"method": "Network.loadingFinished", "params": {
        "requestId": request_id, "encodedDataLength": encoded,
    }}


@pytest.fixture
def devtools_log():
    return [
        {"method": "Page.frameNavigated", "params": {}},
        request_will_be_sent("1", "http://example.com/", "Document"),
        request_will_be_sent("1", "https://example.com/", "Document", redirect_response={
            "status": 301, "protocol": "http/1.1", "encodedDataLength": 150,
        }),
        response_received("1"),
        data_received("1", 4000),
        data_received("1", 1000),
        loading_finished("1", 1800),
        request_will_be_sent("2", "https://cdn.other.com/lib.js", "Script"),
        response_received("2", encoded=300),
        data_received("2", 9000, 2000),
        request_will_be_sent("3", "data:image/png;base64,AAAA", "Image"),
        response_received("3", protocol="data", encoded=0),
        data_received("3", 3),
        request_will_be_sent("4", "https://example.com/missing.png", "Image"),
        {"method": "Network.loadingFailed", "params": {"requestId": "4", "type": "Image"}},
        loading_finished("unknown", 10),
    ]


class TestRecordsFromDevtoolsLog:
    """Tests for the network recorder."""

    def test_records_in_request_order(self, devtools_log):
        records = records_from_devtools_log(devtools_log)
        assert [r.url for r in records] == [
            "http://example.com/",
            "https://example.com/",
            "https://cdn.other.com/lib.js",
            "data:image/png;base64,AAAA",
            "https://example.com/missing.png",
        ]

    def test_redirect_hop(self, devtools_log):
        redirect, document = records_from_devtools_log(devtools_log)[:2]
        assert redirect.request_id == "1:redirect"
        assert redirect.status_code == 301
        assert redirect.transfer_size == 150
        assert redirect.redirect_destination is document
        assert document.request_id == "1"

    def test_sizes(self, devtools_log):
        records = records_from_devtools_log(devtools_log)
        document, script = records[1], records[2]
        assert document.resource_size == 5000
        assert document.transfer_size == 1800
        assert document.finished
        assert script.resource_size == 9000
        assert script.transfer_size == 2300
        assert not script.finished

    def test_protocol_and_failure(self, devtools_log):
        records = records_from_devtools_log(devtools_log)
        assert records[3].protocol == "data"
        assert records[4].failed

    def test_served_from_cache(self):
        records = records_from_devtools_log([
            request_will_be_sent("1", "https://example.com/a.css", "Stylesheet"),
            response_received("1", encoded=500),
            {"method": "Network.requestServedFromCache", "params": {"requestId": "1"}},
        ])
        assert records[0].from_cache
        assert records[0].transfer_size == 0

    def test_wrapped_log(self, devtools_log):
        assert len(records_from_devtools_log({"events": devtools_log})) == 5

    def test_empty_log(self):
        assert records_from_devtools_log([]) == []

    @pytest.mark.parametrize("log", [
        "not a log",
        {"other": []},
        ["event"],
        [{"params": {}}],
        [{"method": "Network.requestWillBeSent", "params": {"requestId": "1"}}],
        [{"method": "Network.requestWillBeSent", "params": "oops"}],
        [request_will_be_sent("1", "https://example.com/"),
         {"method": "Network.dataReceived", "params": {"requestId": ["1"], "dataLength": 10}}],
        [request_will_be_sent("1", "https://example.com/"),
         {"method": "Network.loadingFinished", "params": {"requestId": {"id": "1"}}}],
        [request_will_be_sent("1", "https://example.com/"), data_received("1", "12")],
        [request_will_be_sent("1", "https://example.com/"), data_received("1", True)],
        [request_will_be_sent("1", "https://example.com/"),
         {"method": "Network.responseReceived", "params": {"requestId": "1", "response": "x"}}],
        [request_will_be_sent("1", "https://example.com/"),
         request_will_be_sent("1", "https://example.com/next", redirect_response="x")],
    ])
    def test_malformed_logs(self, log):
        with pytest.raises(RecordParsingError):
            records_from_devtools_log(log)


class TestLoadDevtoolsLog:
    """Tests for reading devtools logs from disk."""

    def test_load(self, tmp_path, devtools_log):
        path = tmp_path / "page.devtoolslog.json"
        path.write_text(json.dumps(devtools_log))
        assert load_devtools_log(path) == devtools_log

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "page.devtoolslog.json"
        path.write_text("{not json")
        with pytest.raises(RecordParsingError):
            load_devtools_log(path)


class TestFindMainDocumentUrl:
    """Tests for locating the main document."""

    def test_follows_redirects(self, devtools_log):
        records = records_from_devtools_log(devtools_log)
        assert find_main_document_url(records, "http://example.com/") == "https://example.com/"

    def test_falls_back_to_requested_url(self):
        assert find_main_document_url([], "https://example.com/") == "https://example.com/"
