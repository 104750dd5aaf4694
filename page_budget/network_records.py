"""Network request records built from a devtools protocol log.

A devtools log is the ordered list of protocol events recorded while the
page loaded, each an object of the form {"method": ..., "params": {...}}.
Only Network.* events contribute to the records.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from .models import NetworkRequestRecord, ProtocolResourceType

logger = logging.getLogger(__name__)


class RecordParsingError(ValueError):
    """Raised when a devtools log cannot be turned into network records."""


class NetworkRecorder:
    """Accumulates network records from devtools protocol events."""

    def __init__(self):
        self._records: list[NetworkRequestRecord] = []
        self._by_id: dict[str, NetworkRequestRecord] = {}

    @property
    def records(self) -> list[NetworkRequestRecord]:
        return list(self._records)

    def dispatch(self, event: dict) -> None:
        if not isinstance(event, dict):
            raise RecordParsingError(f"Devtools log event must be an object, got {event!r}")
        method = event.get("method")
        if not isinstance(method, str):
            raise RecordParsingError(f"Devtools log event without a method: {event!r}")
        params = event.get("params") or {}
        if not isinstance(params, dict):
            raise RecordParsingError(f"Event {method} has malformed params")

        handler = {
            "Network.requestWillBeSent": self._on_request_will_be_sent,
            "Network.responseReceived": self._on_response_received,
            "Network.dataReceived": self._on_data_received,
            "Network.loadingFinished": self._on_loading_finished,
            "Network.loadingFailed": self._on_loading_failed,
            "Network.requestServedFromCache": self._on_served_from_cache,
        }.get(method)
        if handler:
            try:
                handler(params)
            except (TypeError, AttributeError) as e:
                raise RecordParsingError(f"Event {method} has malformed fields: {e}") from e

    def _lookup(self, params: dict, method: str) -> NetworkRequestRecord | None:
        request_id = params.get("requestId")
        if not isinstance(request_id, str):
            raise RecordParsingError(f"{method} has a malformed requestId: {request_id!r}")
        record = self._by_id.get(request_id)
        if record is None:
            logger.debug("Ignoring %s for unknown request %s", method, params.get("requestId"))
        return record

    def _on_request_will_be_sent(self, params: dict) -> None:
        request_id = params.get("requestId")
        request = params.get("request")
        if not isinstance(request_id, str) or not isinstance(request, dict) \
                or not isinstance(request.get("url"), str):
            raise RecordParsingError(
                f"Network.requestWillBeSent is missing requestId or request.url: {params!r}"
            )

        record = NetworkRequestRecord(
            url=request["url"],
            resource_type=params.get("type"),
            request_id=request_id,
        )

        redirect_response = params.get("redirectResponse")
        if redirect_response is not None and not isinstance(redirect_response, dict):
            raise RecordParsingError(
                f"Network.requestWillBeSent has a malformed redirectResponse: {params!r}"
            )
        previous = self._by_id.get(request_id)
        if redirect_response and previous is not None:
            # The previous hop is finished; its id moves aside for the new hop.
            self._apply_response(previous, redirect_response)
            previous.transfer_size = redirect_response.get("encodedDataLength") or 0
            previous.finished = True
            previous.request_id = f"{request_id}:redirect"
            previous.redirect_destination = record
            self._by_id[previous.request_id] = previous

        self._by_id[request_id] = record
        self._records.append(record)

    @staticmethod
    def _apply_response(record: NetworkRequestRecord, response: dict) -> None:
        record.status_code = response.get("status", record.status_code)
        record.mime_type = response.get("mimeType", record.mime_type)
        record.protocol = response.get("protocol") or record.protocol
        if response.get("fromDiskCache") or response.get("fromServiceWorker"):
            record.from_cache = True

    def _on_response_received(self, params: dict) -> None:
        record = self._lookup(params, "Network.responseReceived")
        if record is None:
            return
        response = params.get("response") or {}
        if not isinstance(response, dict):
            raise RecordParsingError(
                f"Network.responseReceived has a malformed response: {params!r}"
            )
        self._apply_response(record, response)
        if params.get("type"):
            record.resource_type = params["type"]
        encoded = response.get("encodedDataLength")
        if isinstance(encoded, int) and encoded >= 0:
            record.transfer_size = encoded

    def _on_data_received(self, params: dict) -> None:
        record = self._lookup(params, "Network.dataReceived")
        if record is None:
            return
        data_length = params.get("dataLength") or 0
        if not isinstance(data_length, int) or isinstance(data_length, bool):
            raise RecordParsingError(
                f"Network.dataReceived has a malformed dataLength: {params!r}"
            )
        record.resource_size = (record.resource_size or 0) + data_length
        encoded = params.get("encodedDataLength")
        if isinstance(encoded, int) and encoded >= 0:
            record.transfer_size = (record.transfer_size or 0) + encoded

    def _on_loading_finished(self, params: dict) -> None:
        record = self._lookup(params, "Network.loadingFinished")
        if record is None:
            return
        encoded = params.get("encodedDataLength")
        if isinstance(encoded, int) and encoded >= 0:
            record.transfer_size = encoded
        record.finished = True

    def _on_loading_failed(self, params: dict) -> None:
        record = self._lookup(params, "Network.loadingFailed")
        if record is None:
            return
        if params.get("type"):
            record.resource_type = params["type"]
        record.failed = True
        record.finished = True

    def _on_served_from_cache(self, params: dict) -> None:
        record = self._lookup(params, "Network.requestServedFromCache")
        if record is None:
            return
        record.from_cache = True
        record.transfer_size = 0


def _events(devtools_log) -> list:
    if isinstance(devtools_log, dict):
        devtools_log = devtools_log.get("events", devtools_log.get("devtoolsLog"))
    if not isinstance(devtools_log, list):
        raise RecordParsingError("Devtools log must be a list of protocol events")
    return devtools_log


def records_from_devtools_log(devtools_log) -> list[NetworkRequestRecord]:
    """Build network records, in request order, from a devtools log."""
    events = _events(devtools_log)
    recorder = NetworkRecorder()
    for event in events:
        recorder.dispatch(event)
    records = recorder.records
    logger.debug("Built %d network records from %d events", len(records), len(events))
    return records


def load_devtools_log(path: str | Path) -> list:
    """Load a devtools log from a JSON file."""
    log_path = Path(path)
    try:
        with open(log_path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise RecordParsingError(f"Failed to parse devtools log {log_path}: {e}") from e
    return _events(data)


def find_main_document_url(
    records: list[NetworkRequestRecord],
    requested_url: str | None = None,
) -> str | None:
    """URL of the page's main document, following redirects to the last hop."""
    for record in records:
        if record.resource_type != ProtocolResourceType.DOCUMENT.value:
            continue
        while record.redirect_destination is not None:
            record = record.redirect_destination
        return record.url
    return requested_url
