import asyncio
import json
import logging

import pytest

from framebridge.config import BridgeConfig
from framebridge.errors import ChannelClosedError, RemoteInvocationError, RequestTimeoutError
from framebridge.rpc.manager import ChannelManager
from framebridge.rpc.messages import RpcMessage
from framebridge.transport.local import LocalContext
from framebridge.transport.protocols import MessageEvent, MessageSink

HOST_ORIGIN = "https://host.example"
FRAME_ORIGIN = "https://frame.example"


class RecordingSink(MessageSink):
    def __init__(self) -> None:
        self.sent = []

    async def post_message(self, data, target_origin):
        self.sent.append(json.loads(data))


class Calculator:
    def add(self, a, b):
        return a + b

    async def apply(self, fn, a, b):
        return await fn(a, b)


class Greeter:
    def __init__(self, context=None) -> None:
        self.name = (context or {}).get("name", "frame")

    def greet(self, who):
        return f"hello {who} from {self.name}"


async def _drain() -> None:
    for _ in range(10):
        await asyncio.sleep(0)


class Pair:
    """A host and a frame context with one channel each, both managers running."""

    def __init__(self, host_knows_origin: bool = True) -> None:
        self.host = LocalContext(HOST_ORIGIN)
        self.frame = LocalContext(FRAME_ORIGIN)
        self.host_manager = ChannelManager(self.host)
        self.frame_manager = ChannelManager(self.frame)
        self.host_channel = self.host_manager.add_channel(
            self.host.port_to(self.frame), FRAME_ORIGIN if host_knows_origin else None
        )
        self.frame_channel = self.frame_manager.add_channel(
            self.frame.port_to(self.host), HOST_ORIGIN
        )

    async def __aenter__(self) -> "Pair":
        self.host_manager.start()
        self.frame_manager.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.host_manager.stop()
        await self.frame_manager.stop()


def test_remote_call_bootstraps_handshake():
    async def scenario():
        async with Pair(host_knows_origin=False) as pair:
            pair.frame_manager.global_registry.register("calc", Calculator())
            assert pair.host_channel.target_origin is None
            result = await pair.host_channel.invoke_remote_method("add", "calc", [2, 3])
            return result, pair.host_channel.target_origin

    assert asyncio.run(scenario()) == (5, FRAME_ORIGIN)


def test_function_arguments_call_back_into_the_caller():
    calls = []

    def multiply(a, b):
        calls.append((a, b))
        return a * b

    async def scenario():
        async with Pair() as pair:
            pair.frame_channel.get_object_registry().register("calc", Calculator())
            return await pair.host_channel.invoke_remote_method(
                "apply", "calc", [multiply, 6, 7]
            )

    assert asyncio.run(scenario()) == 42
    assert calls == [(6, 7)]


def test_remote_object_proxy_exposes_methods():
    async def scenario():
        async with Pair() as pair:
            pair.frame_manager.global_registry.register("greeter", Greeter)
            proxy = await pair.host_channel.get_remote_object_proxy(
                "greeter", {"name": "sidebar"}
            )
            greeting = await proxy["greet"]("bob")
            return proxy["name"], greeting

    assert asyncio.run(scenario()) == ("sidebar", "hello bob from sidebar")


def test_unresolvable_request_is_rejected_with_instance_id():
    async def scenario():
        async with Pair() as pair:
            with pytest.raises(RemoteInvocationError) as info:
                await pair.host_channel.invoke_remote_method("foo", "no-such-instance", [])
            return info.value

    error = asyncio.run(scenario())
    assert "no-such-instance" in str(error)
    assert error.remote_type_name == "ObjectNotFoundError"


def test_remote_method_failure_is_rejected():
    async def scenario():
        async with Pair() as pair:
            pair.frame_manager.global_registry.register("calc", Calculator())
            with pytest.raises(RemoteInvocationError) as info:
                await pair.host_channel.invoke_remote_method("add", "calc", [1])
            return info.value

    error = asyncio.run(scenario())
    assert error.remote_type_name == "TypeError"


def test_unparsable_payloads_are_ignored():
    async def scenario():
        sink = RecordingSink()
        manager = ChannelManager()
        manager.add_channel(sink, FRAME_ORIGIN)
        results = [
            await manager.handle_event(MessageEvent("not json", sink, FRAME_ORIGIN)),
            await manager.handle_event(MessageEvent("[1, 2]", sink, FRAME_ORIGIN)),
            await manager.handle_event(MessageEvent({"id": 1}, sink, FRAME_ORIGIN)),
        ]
        return results, sink.sent

    assert asyncio.run(scenario()) == ([False, False, False], [])


def test_untrusted_messages_get_no_response():
    async def scenario():
        sink = RecordingSink()
        manager = ChannelManager()
        manager.add_channel(sink, FRAME_ORIGIN)
        request = RpcMessage(id=1, method_name="add", instance_id="missing").to_wire()
        stranger = await manager.handle_event(MessageEvent(request, RecordingSink(), FRAME_ORIGIN))
        wrong_origin = await manager.handle_event(MessageEvent(request, sink, "https://evil.example"))
        return stranger, wrong_origin, sink.sent

    assert asyncio.run(scenario()) == (False, False, [])


def test_channels_only_see_their_own_responses():
    async def scenario():
        sink_a, sink_b = RecordingSink(), RecordingSink()
        manager = ChannelManager()
        channel_a = manager.add_channel(sink_a, FRAME_ORIGIN)
        channel_b = manager.add_channel(sink_b, FRAME_ORIGIN)
        call_a = asyncio.ensure_future(channel_a.invoke_remote_method("get", "store", []))
        call_b = asyncio.ensure_future(channel_b.invoke_remote_method("get", "store", []))
        await asyncio.sleep(0)
        assert sink_a.sent[0]["id"] == sink_b.sent[0]["id"] == 1

        response = RpcMessage(id=1, result="for-a").to_wire()
        handled = await manager.handle_event(MessageEvent(response, sink_a, FRAME_ORIGIN))
        result_a = await call_a
        still_pending = list(channel_b._pending)
        call_b.cancel()
        return handled, result_a, still_pending

    assert asyncio.run(scenario()) == (True, "for-a", [1])


def test_responses_arriving_out_of_order_settle_by_id():
    async def scenario():
        sink = RecordingSink()
        manager = ChannelManager()
        channel = manager.add_channel(sink, FRAME_ORIGIN)
        first = asyncio.ensure_future(channel.invoke_remote_method("get", "store", ["a"]))
        second = asyncio.ensure_future(channel.invoke_remote_method("get", "store", ["b"]))
        await asyncio.sleep(0)
        for message_id, value in ((2, "b"), (1, "a")):
            response = RpcMessage(id=message_id, result=value).to_wire()
            await manager.handle_event(MessageEvent(response, sink, FRAME_ORIGIN))
        return await first, await second

    assert asyncio.run(scenario()) == ("a", "b")


def test_unhandled_request_on_owned_channel_returns_not_found():
    async def scenario():
        sink = RecordingSink()
        manager = ChannelManager()
        manager.add_channel(sink, FRAME_ORIGIN)
        request = RpcMessage(
            id=9, method_name="add", instance_id="missing", handshake_token="tok"
        ).to_wire()
        handled = await manager.handle_event(MessageEvent(request, sink, FRAME_ORIGIN))
        return handled, sink.sent

    handled, sent = asyncio.run(scenario())
    assert handled is False
    assert sent[0]["id"] == 9
    assert sent[0]["handshakeToken"] == "tok"
    assert sent[0]["error"]["message"] == "The registered object missing could not be found."


def test_unhandled_message_is_logged(caplog):
    async def scenario():
        sink = RecordingSink()
        manager = ChannelManager()
        manager.add_channel(sink, FRAME_ORIGIN)
        request = RpcMessage(id=3, method_name="add", instance_id="missing").to_wire()
        with caplog.at_level(logging.ERROR, logger="framebridge"):
            await manager.handle_event(MessageEvent(request, sink, FRAME_ORIGIN))

    asyncio.run(scenario())
    assert any("No handler found" in record.getMessage() for record in caplog.records)


def test_out_of_range_date_in_response_still_settles_the_call():
    async def scenario():
        sink = RecordingSink()
        manager = ChannelManager()
        channel = manager.add_channel(sink, FRAME_ORIGIN)
        call = asyncio.ensure_future(channel.invoke_remote_method("now", "clock", []))
        await asyncio.sleep(0)
        response = json.dumps({"id": 1, "result": {"__proxyDate": 10**20}})
        handled = await manager.handle_event(MessageEvent(response, sink, FRAME_ORIGIN))
        result = await asyncio.wait_for(call, 1)
        return handled, result, channel._pending

    assert asyncio.run(scenario()) == (True, None, {})


def test_remove_channel_rejects_in_flight_and_stops_routing():
    async def scenario():
        sink = RecordingSink()
        manager = ChannelManager()
        channel = manager.add_channel(sink, FRAME_ORIGIN)
        call = asyncio.ensure_future(channel.invoke_remote_method("get", "store", []))
        await asyncio.sleep(0)
        manager.remove_channel(channel)
        with pytest.raises(ChannelClosedError):
            await call
        response = RpcMessage(id=1, result="late").to_wire()
        handled = await manager.handle_event(MessageEvent(response, sink, FRAME_ORIGIN))
        return handled, manager.channels

    assert asyncio.run(scenario()) == (False, [])


def test_config_timeout_applies_to_channels():
    async def scenario():
        manager = ChannelManager(config=BridgeConfig(request_timeout_seconds=0.01))
        channel = manager.add_channel(RecordingSink(), FRAME_ORIGIN)
        with pytest.raises(RequestTimeoutError):
            await channel.invoke_remote_method("get", "store", [])

    asyncio.run(scenario())


def test_start_requires_a_source():
    async def scenario():
        with pytest.raises(RuntimeError):
            ChannelManager().start()

    asyncio.run(scenario())
