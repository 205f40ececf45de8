"""
Management Protocol Parser

This module handles parsing of raw management requests and formatting of
responses.

Protocol Format:
    Request:  {"op": "<operation>", ...fields}\n
    Response: {"success": true|false, ...fields}\n
"""

import json

from .commands import OperationType, Request, Response

_OPERATIONS = {op.value: op for op in OperationType if op is not OperationType.UNKNOWN}


class RequestParser:
    """
    Parser for the newline-delimited JSON management protocol.

    Operations and their fields:
        connect       url
        set           key, value
        get           key
        getMultiple   keys
        delete        key
        flush         -
        listKeys      -
        quit          -   (connection closed)
    """

    def parse_request(self, data: str) -> Request:
        """
        Parse a raw request line into a Request object.

        Args:
            data: Raw request line (may include trailing newline)

        Returns:
            Request for the named operation. Returns a Request with
            valid=False if the payload is not a JSON object or a field has
            the wrong type, and type=UNKNOWN if the operation is not known.

        Examples:
            >>> parser = RequestParser()
            >>> req = parser.parse_request('{"op": "get", "key": "k"}')
            >>> req.type == OperationType.GET
            True
            >>> req.key
            'k'
        """
        raw = data.strip()
        try:
            payload = json.loads(raw)
        except ValueError:
            return Request(type=OperationType.UNKNOWN, valid=False, raw=raw)

        if not isinstance(payload, dict):
            return Request(type=OperationType.UNKNOWN, valid=False, raw=raw)

        op_name = payload.get("op")
        if not isinstance(op_name, str):
            return Request(type=OperationType.UNKNOWN, valid=False, raw=raw)

        op = _OPERATIONS.get(op_name, OperationType.UNKNOWN)
        request = Request(type=op, raw=raw)

        for name in ("url", "key", "value"):
            field_value = payload.get(name)
            if field_value is None:
                continue
            if not isinstance(field_value, str):
                request.valid = False
                return request
            setattr(request, name, field_value)

        keys = payload.get("keys")
        if keys is not None:
            if not isinstance(keys, list) or not all(isinstance(k, str) for k in keys):
                request.valid = False
                return request
            request.keys = keys

        return request

    def format_response(self, response: Response) -> str:
        """
        Format a Response object into a protocol line.

        Returns:
            Compact JSON WITH trailing newline.

        Examples:
            >>> parser = RequestParser()
            >>> parser.format_response(Response.failure("no items found"))
            '{"success": false, "error": "no items found"}\\n'
        """
        return json.dumps(response.to_dict()) + "\n"
