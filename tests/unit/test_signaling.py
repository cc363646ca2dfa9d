# pylint: disable=missing-module-docstring,missing-function-docstring

import json

import pytest

from protocol import signaling
from protocol.errors import MalformedMessage
from protocol.signaling import (
    DeclareProducer,
    JoinViewer,
    ListActiveStreams,
    SignalingMessage,
    SignalType,
    parse_inbound,
)


def test_parse_declare_producer_with_metadata():
    msg = parse_inbound(json.dumps({
        "type": "declare-producer",
        "streamId": "s1",
        "metadata": {"device": "pixel"},
    }))
    assert msg == DeclareProducer(stream_id="s1", metadata={"device": "pixel"})


def test_parse_join_and_list():
    assert parse_inbound('{"type":"join-viewer","streamId":"s1"}') == JoinViewer("s1")
    assert isinstance(parse_inbound('{"type":"list-active-streams"}'), ListActiveStreams)


def test_parse_offer_with_target_and_unknown_keys():
    msg = parse_inbound(json.dumps({
        "type": "offer",
        "payload": {"sdp": "v=0"},
        "targetViewerId": "v1",
        "extra": True,
    }))
    assert msg == SignalingMessage(
        kind=SignalType.OFFER, payload={"sdp": "v=0"}, target_viewer_id="v1"
    )


@pytest.mark.parametrize(
    "text",
    [
        "{not json",
        "[]",
        '{"type":"teleport"}',
        '{"type":"join-viewer"}',
        '{"type":"declare-producer","streamId":""}',
        '{"type":"answer"}',
        '{"type":"offer","payload":1,"targetViewerId":7}',
    ],
)
def test_malformed_inbound(text: str):
    with pytest.raises(MalformedMessage):
        parse_inbound(text)


def test_relayed_carries_source_and_stream():
    signal = SignalingMessage(kind=SignalType.ICE_CANDIDATE, payload={"c": 1})
    out = signaling.relayed(signal, source_id="p1", source_role="producer", stream_id="s1")

    assert out == {
        "type": "ice-candidate",
        "payload": {"c": 1},
        "from": "p1",
        "sourceRole": "producer",
        "streamId": "s1",
    }
