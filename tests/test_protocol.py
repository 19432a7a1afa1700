import pytest

from shared.protocol import (
    MAX_FRAME_SIZE,
    ChunkHeaderMsg,
    MalformedFrame,
    MsgType,
    Operation,
    ProtocolError,
    RequestMsg,
    ResponseMsg,
    classify,
    decode_msg,
    encode_msg,
    parse_frame,
)
from shared.protocol.errors import ErrorCode


def test_encode_decode_roundtrip():
    msg = {"id": "1", "operation": "capture_viewport", "format": "png"}
    decoded = decode_msg(encode_msg(msg))
    assert decoded == msg


def test_decode_accepts_bytes():
    assert decode_msg(b'{"type":"ping"}') == {"type": "ping"}


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", "42", b"\xff\xfe"])
def test_decode_rejects_non_objects(raw):
    with pytest.raises(MalformedFrame):
        decode_msg(raw)


@pytest.mark.parametrize(
    "msg, kind",
    [
        ({"id": "1", "operation": "get_page_info"}, MsgType.REQUEST),
        ({"id": "1", "success": True, "data": {}}, MsgType.RESPONSE),
        ({"id": "1", "type": "response", "success": False, "error": "x"}, MsgType.RESPONSE),
        ({"id": "1", "type": "chunk_header", "totalChunks": 2, "totalSize": 10}, MsgType.CHUNK_HEADER),
        ({"id": "1", "type": "chunk_data", "chunkIndex": 0, "data": "a"}, MsgType.CHUNK_DATA),
        ({"id": "1", "type": "chunk_complete"}, MsgType.CHUNK_COMPLETE),
        ({"type": "ping"}, MsgType.PING),
        ({"type": "pong"}, MsgType.PONG),
    ],
)
def test_classify(msg, kind):
    assert classify(msg) is kind


def test_classify_rejects_unknown_shape():
    with pytest.raises(MalformedFrame):
        classify({"type": "auto_capture_event", "data": {}})


def test_frame_without_id_is_malformed():
    with pytest.raises(MalformedFrame):
        parse_frame('{"type":"chunk_data","chunkIndex":0,"data":"abc"}')
    with pytest.raises(MalformedFrame):
        parse_frame('{"success":true,"data":{}}')


def test_ping_needs_no_id():
    kind, msg = parse_frame('{"type":"ping"}')
    assert kind is MsgType.PING
    assert msg == {"type": "ping"}


def test_unknown_fields_are_ignored():
    kind, msg = parse_frame('{"id":"7","success":true,"data":{"source":"<html/>"},"extra":1}')
    assert kind is MsgType.RESPONSE
    response = ResponseMsg.from_dict(msg)
    assert response.data == {"source": "<html/>"}
    assert "extra" not in response.to_dict()


def test_request_parameters_are_flattened():
    request = RequestMsg.build("3", Operation.CAPTURE_ELEMENT, {"selector": "#main", "index": 1})
    wire = request.to_dict()
    assert wire == {"id": "3", "operation": "capture_element", "selector": "#main", "index": 1}

    parsed = RequestMsg.from_dict({**wire, "type": "request"})
    assert parsed.operation_text == "capture_element"
    assert parsed.parameters == {"selector": "#main", "index": 1}


def test_request_rejects_reserved_parameter_names():
    with pytest.raises(ValueError):
        RequestMsg.build("1", Operation.GET_PAGE_INFO, {"type": "ping"})


def test_oversized_frame_is_refused():
    with pytest.raises(ProtocolError) as info:
        encode_msg({"id": "1", "success": True, "data": {"blob": "x" * MAX_FRAME_SIZE}})
    assert info.value.code is ErrorCode.FRAME_TOO_LARGE


def test_error_payload_shape():
    payload = MalformedFrame("bad frame").to_payload()
    assert payload == {"success": False, "error": "bad frame", "error_code": int(ErrorCode.MALFORMED_FRAME)}


@pytest.mark.parametrize(
    "header",
    [
        {"id": "1", "type": "chunk_header", "totalChunks": 10**12, "totalSize": 10},
        {"id": "1", "type": "chunk_header", "totalChunks": 2, "totalSize": 0},
    ],
)
def test_chunk_header_with_more_chunks_than_characters_is_malformed(header):
    kind, msg = parse_frame(encode_msg(header))
    assert kind is MsgType.CHUNK_HEADER
    with pytest.raises(MalformedFrame):
        ChunkHeaderMsg.from_dict(msg)


def test_chunk_header_names_streamed_field():
    header = ChunkHeaderMsg.from_dict(
        {"id": "5", "type": "chunk_header", "totalChunks": 2, "totalSize": 9, "field": "source", "meta": {"n": 1}}
    )
    assert header.field == "source"
    assert header.meta == {"n": 1}
    assert ChunkHeaderMsg.from_dict({"id": "5", "type": "chunk_header", "totalChunks": 1, "totalSize": 0}).field == (
        "screenshot"
    )
