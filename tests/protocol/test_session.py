"""Tests for request correlation, dispatch, timeouts and cancellation."""

import asyncio

import pytest

from parley.config import SessionOptions
from parley.protocol.errors import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    HandlerError,
    MCPError,
    RequestCancelledError,
    RequestTimeoutError,
    TransportClosedError,
)
from parley.protocol.handlers import NO_TIMEOUT, HandlerRegistry, RequestOptions
from parley.protocol.session import ProtocolSession
from parley.protocol.state import ProtocolState
from parley.transport.base import TransportError
from parley.utilities.types import ProgressInfo


def reply(request_id, result):
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def request(request_id, method, params=None):
    message = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return message


def notification(method, params=None):
    message = {"jsonrpc": "2.0", "method": method}
    if params is not None:
        message["params"] = params
    return message


class TestOutgoingRequests:
    """Requests sent by the session and the replies that settle them."""

    @pytest.mark.asyncio
    async def test_request_resolves_with_result(self, attach_peer, drain):
        session = ProtocolSession()
        _, peer = await attach_peer(session)

        outgoing = session.send("tools/list", {"cursor": "a"})
        await drain()

        sent = peer.requests("tools/list")
        assert len(sent) == 1
        assert sent[0]["params"] == {"cursor": "a"}

        await peer.send(reply(sent[0]["id"], {"tools": []}))
        assert await outgoing == {"tools": []}
        assert len(session.pending) == 0

    @pytest.mark.asyncio
    async def test_out_of_order_replies(self, attach_peer, drain):
        session = ProtocolSession()
        _, peer = await attach_peer(session)

        first = session.send("a")
        second = session.send("b")
        await drain()
        assert first.id != second.id

        await peer.send(reply(second.id, "second"))
        await peer.send(reply(first.id, "first"))

        assert await first == "first"
        assert await second == "second"

    @pytest.mark.asyncio
    async def test_error_response_rejects(self, attach_peer, drain):
        session = ProtocolSession()
        _, peer = await attach_peer(session)

        outgoing = session.send("tools/call")
        await drain()
        await peer.send(
            {"jsonrpc": "2.0", "id": outgoing.id, "error": {"code": METHOD_NOT_FOUND, "message": "nope"}}
        )

        with pytest.raises(MCPError) as exc_info:
            await outgoing
        assert exc_info.value.code == METHOD_NOT_FOUND

    @pytest.mark.asyncio
    async def test_stale_reply_is_ignored(self, attach_peer, drain):
        session = ProtocolSession()
        session_end, peer = await attach_peer(session)
        errors = []
        session.on_error = errors.append

        outgoing = session.send("a")
        await drain()
        await peer.send(reply(999, "nobody asked"))
        await drain()

        assert not outgoing.done()
        assert errors == []
        await peer.send(reply(outgoing.id, "ok"))
        assert await outgoing == "ok"

    @pytest.mark.asyncio
    async def test_result_type_converts_result(self, attach_peer, drain):
        session = ProtocolSession()
        _, peer = await attach_peer(session)

        outgoing = session.send("count", options=RequestOptions(result_type=lambda r: r["value"]))
        await drain()
        await peer.send(reply(outgoing.id, {"value": 3}))
        assert await outgoing == 3

    @pytest.mark.asyncio
    async def test_max_pending_requests(self, attach_peer):
        session = ProtocolSession(options=SessionOptions(max_pending_requests=1))
        await attach_peer(session)

        session.send("a")
        with pytest.raises(MCPError, match="Too many pending requests"):
            session.send("b")

    @pytest.mark.asyncio
    async def test_send_before_connect_fails(self):
        session = ProtocolSession()
        with pytest.raises(TransportClosedError, match="not connected"):
            session.send("a")

    @pytest.mark.asyncio
    async def test_connect_twice_fails(self, attach_peer):
        session = ProtocolSession()
        session_end, _ = await attach_peer(session)
        with pytest.raises(RuntimeError):
            await session.connect(session_end)

    @pytest.mark.asyncio
    async def test_default_progress_token_skips_caller_token(self, attach_peer, drain):
        session = ProtocolSession()
        _, peer = await attach_peer(session)
        updates = []

        first = session.send("a", options=RequestOptions(progress_token=1))
        second = session.send("b", options=RequestOptions(on_progress=updates.append))
        await drain()

        assert first.id == 0
        assert second.id == 2
        assert peer.requests("b")[0]["params"]["_meta"] == {"progressToken": 2}

        await peer.send(notification("notifications/progress", {"progressToken": 1, "progress": 1}))
        await peer.send(notification("notifications/progress", {"progressToken": 2, "progress": 3}))
        await drain()
        assert updates == [ProgressInfo(progress_token=2, progress=3.0)]

    @pytest.mark.asyncio
    async def test_duplicate_caller_progress_token_refused(self, attach_peer):
        session = ProtocolSession()
        await attach_peer(session)

        session.send("a", options=RequestOptions(progress_token="job"))
        with pytest.raises(MCPError) as exc_info:
            session.send("b", options=RequestOptions(progress_token="job"))
        assert exc_info.value.code == INVALID_PARAMS
        assert len(session.pending) == 1


class TestTimeouts:
    @pytest.mark.asyncio
    async def test_timeout_rejects_and_sends_one_cancellation(self, attach_peer, drain):
        session = ProtocolSession(options=SessionOptions(request_timeout=0.05))
        _, peer = await attach_peer(session)

        outgoing = session.send("slow")
        with pytest.raises(RequestTimeoutError):
            await outgoing
        await drain()

        cancels = peer.notifications("notifications/cancelled")
        assert len(cancels) == 1
        assert cancels[0]["params"]["requestId"] == outgoing.id
        assert len(session.pending) == 0

        # A late reply changes nothing
        await peer.send(reply(outgoing.id, "late"))
        await drain()
        assert len(peer.notifications("notifications/cancelled")) == 1

    @pytest.mark.asyncio
    async def test_per_call_timeout_overrides_default(self, attach_peer):
        session = ProtocolSession(options=SessionOptions(request_timeout=30.0))
        await attach_peer(session)

        with pytest.raises(RequestTimeoutError):
            await session.request("slow", timeout=0.05)

    @pytest.mark.asyncio
    async def test_per_call_no_timeout_overrides_default(self, attach_peer, drain):
        session = ProtocolSession(options=SessionOptions(request_timeout=0.05))
        _, peer = await attach_peer(session)

        outgoing = session.send("slow", options=RequestOptions(timeout=NO_TIMEOUT))
        await asyncio.sleep(0.15)
        assert not outgoing.done()
        assert peer.notifications("notifications/cancelled") == []

        await peer.send(reply(outgoing.id, "eventually"))
        assert await outgoing == "eventually"

    @pytest.mark.asyncio
    async def test_progress_resets_timeout(self, attach_peer, drain):
        session = ProtocolSession()
        _, peer = await attach_peer(session)

        outgoing = session.send(
            "slow",
            options=RequestOptions(timeout=0.2, reset_timeout_on_progress=True, on_progress=lambda info: None),
        )
        await drain()
        token = peer.requests("slow")[0]["params"]["_meta"]["progressToken"]

        for step in range(1, 4):
            await asyncio.sleep(0.1)
            await peer.send(notification("notifications/progress", {"progressToken": token, "progress": step}))
            await drain()

        assert not outgoing.done()
        await peer.send(reply(outgoing.id, "finished"))
        assert await outgoing == "finished"

    @pytest.mark.asyncio
    async def test_max_total_timeout_caps_resets(self, attach_peer, drain):
        session = ProtocolSession()
        _, peer = await attach_peer(session)

        outgoing = session.send(
            "slow",
            options=RequestOptions(
                timeout=0.3,
                reset_timeout_on_progress=True,
                max_total_timeout=0.4,
                on_progress=lambda info: None,
            ),
        )
        await drain()
        token = peer.requests("slow")[0]["params"]["_meta"]["progressToken"]

        loop = asyncio.get_running_loop()
        started = loop.time()
        await asyncio.sleep(0.2)
        await peer.send(notification("notifications/progress", {"progressToken": token, "progress": 1}))

        with pytest.raises(RequestTimeoutError):
            await outgoing
        # Without the cap the reset would have pushed expiry to about 0.5s
        assert loop.time() - started < 0.47

    @pytest.mark.asyncio
    async def test_progress_without_reset_keeps_deadline(self, attach_peer, drain):
        session = ProtocolSession()
        _, peer = await attach_peer(session)

        outgoing = session.send("slow", options=RequestOptions(timeout=0.1, on_progress=lambda info: None))
        await drain()
        token = peer.requests("slow")[0]["params"]["_meta"]["progressToken"]

        await asyncio.sleep(0.06)
        await peer.send(notification("notifications/progress", {"progressToken": token, "progress": 1}))

        with pytest.raises(RequestTimeoutError):
            await outgoing

    def test_non_positive_timeouts_rejected(self):
        with pytest.raises(ValueError):
            RequestOptions(timeout=0)
        with pytest.raises(ValueError):
            RequestOptions(max_total_timeout=-1)


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_settles_and_notifies_peer(self, attach_peer, drain):
        session = ProtocolSession()
        _, peer = await attach_peer(session)

        outgoing = session.send("slow")
        await drain()
        assert outgoing.cancel("user abort") is True

        with pytest.raises(RequestCancelledError):
            await outgoing
        await drain()

        cancels = peer.notifications("notifications/cancelled")
        assert cancels == [
            {
                "jsonrpc": "2.0",
                "method": "notifications/cancelled",
                "params": {"requestId": outgoing.id, "reason": "user abort"},
            }
        ]

    @pytest.mark.asyncio
    async def test_cancel_after_settle_is_noop(self, attach_peer, drain):
        session = ProtocolSession()
        _, peer = await attach_peer(session)

        outgoing = session.send("fast")
        await drain()
        await peer.send(reply(outgoing.id, "done"))
        assert await outgoing == "done"

        assert outgoing.cancel() is False
        await drain()
        assert peer.notifications("notifications/cancelled") == []

    @pytest.mark.asyncio
    async def test_cancel_unknown_id(self, attach_peer):
        session = ProtocolSession()
        await attach_peer(session)
        assert session.cancel_request(12345) is False

    @pytest.mark.asyncio
    async def test_caller_task_cancellation(self, attach_peer, drain):
        session = ProtocolSession()
        _, peer = await attach_peer(session)

        task = asyncio.create_task(session.request("slow"))
        await drain()
        request_id = peer.requests("slow")[0]["id"]

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await drain()

        assert len(session.pending) == 0
        cancels = peer.notifications("notifications/cancelled")
        assert len(cancels) == 1
        assert cancels[0]["params"]["requestId"] == request_id

    @pytest.mark.asyncio
    async def test_initialize_is_never_cancelled_on_the_wire(self, attach_peer, drain):
        session = ProtocolSession()
        _, peer = await attach_peer(session)

        outgoing = session.send("initialize", {})
        await drain()
        outgoing.cancel()
        await drain()

        assert peer.notifications("notifications/cancelled") == []


class TestClose:
    @pytest.mark.asyncio
    async def test_close_rejects_pending_and_later_sends(self, attach_peer, drain):
        session = ProtocolSession()
        await attach_peer(session)
        closed = []
        session.on_close = lambda: closed.append(True)

        outgoing = session.send("slow")
        await session.close()

        with pytest.raises(TransportClosedError):
            await outgoing
        with pytest.raises(TransportClosedError, match="closed"):
            session.send("more")
        with pytest.raises(TransportClosedError):
            await session.notify("notifications/message")

        assert session.state is ProtocolState.CLOSED
        assert closed == [True]

        # Closing again is harmless
        await session.close()
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_peer_close_tears_down(self, attach_peer, drain):
        session = ProtocolSession()
        _, peer = await attach_peer(session)

        outgoing = session.send("slow")
        await peer.transport.close()

        with pytest.raises(TransportClosedError):
            await outgoing
        assert session.is_closed

    @pytest.mark.asyncio
    async def test_fatal_transport_error_tears_down(self, attach_peer, drain):
        session = ProtocolSession()
        session_end, _ = await attach_peer(session)
        errors = []
        session.on_error = errors.append

        outgoing = session.send("slow")
        await drain()
        session_end._report_error(TransportError("pipe broke", fatal=True))

        with pytest.raises(TransportClosedError):
            await outgoing
        await drain()
        assert session.is_closed
        assert session_end.closed
        assert len(errors) == 1

    @pytest.mark.asyncio
    async def test_non_fatal_transport_error_keeps_session(self, attach_peer):
        session = ProtocolSession()
        session_end, _ = await attach_peer(session)
        errors = []
        session.on_error = errors.append

        session_end._report_error(TransportError("bad frame"))

        assert not session.is_closed
        assert len(errors) == 1

    @pytest.mark.asyncio
    async def test_close_cancels_in_flight_handlers(self, attach_peer, drain):
        registry = HandlerRegistry()
        seen = []

        async def wait_forever(params, ctx):
            seen.append(await ctx.cancellation.wait())

        registry.on_request("wait", wait_forever)
        session = ProtocolSession(handlers=registry)
        _, peer = await attach_peer(session)

        await peer.send(request(1, "wait"))
        await drain()
        await session.close()
        await drain()

        assert seen == ["Session closed"]


class TestIncomingRequests:
    @pytest.mark.asyncio
    async def test_handler_result_is_returned(self, attach_peer, drain):
        registry = HandlerRegistry()

        async def echo(params, ctx):
            return {"echo": params["text"], "method": ctx.method}

        registry.on_request("echo", echo)
        session = ProtocolSession(handlers=registry)
        _, peer = await attach_peer(session)

        await peer.send(request("r-1", "echo", {"text": "hi"}))
        await drain()

        assert peer.response_for("r-1") == {
            "jsonrpc": "2.0",
            "id": "r-1",
            "result": {"echo": "hi", "method": "echo"},
        }

    @pytest.mark.asyncio
    async def test_none_result_becomes_empty_object(self, attach_peer, drain):
        registry = HandlerRegistry()

        async def nothing(params, ctx):
            return None

        registry.on_request("nothing", nothing)
        session = ProtocolSession(handlers=registry)
        _, peer = await attach_peer(session)

        await peer.send(request(1, "nothing"))
        await drain()
        assert peer.response_for(1)["result"] == {}

    @pytest.mark.asyncio
    async def test_unknown_method(self, attach_peer, drain):
        session = ProtocolSession()
        _, peer = await attach_peer(session)

        await peer.send(request(1, "does/not/exist"))
        await drain()

        response = peer.response_for(1)
        assert response["error"]["code"] == METHOD_NOT_FOUND
        assert response["error"]["data"] == {"method": "does/not/exist"}

    @pytest.mark.asyncio
    async def test_handler_exception_becomes_internal_error(self, attach_peer, drain):
        registry = HandlerRegistry()

        async def broken(params, ctx):
            raise ValueError("kaput")

        registry.on_request("broken", broken)
        session = ProtocolSession(handlers=registry)
        _, peer = await attach_peer(session)
        errors = []
        session.on_error = errors.append

        await peer.send(request(1, "broken"))
        await drain()

        response = peer.response_for(1)
        assert response["error"]["code"] == INTERNAL_ERROR
        assert response["error"]["message"] == "kaput"
        assert len(errors) == 1
        assert isinstance(errors[0], HandlerError)
        assert isinstance(errors[0].cause, ValueError)

    @pytest.mark.asyncio
    async def test_handler_mcp_error_keeps_code(self, attach_peer, drain):
        registry = HandlerRegistry()

        async def picky(params, ctx):
            raise MCPError.invalid_params("name is required")

        registry.on_request("picky", picky)
        session = ProtocolSession(handlers=registry)
        _, peer = await attach_peer(session)

        await peer.send(request(1, "picky"))
        await drain()

        error = peer.response_for(1)["error"]
        assert error["code"] == -32602
        assert error["data"] == {"details": "name is required"}

    @pytest.mark.asyncio
    async def test_ping_is_builtin(self, attach_peer, drain):
        session = ProtocolSession()
        _, peer = await attach_peer(session)

        await peer.send(request(5, "ping"))
        await drain()
        assert peer.response_for(5)["result"] == {}

    @pytest.mark.asyncio
    async def test_fallback_request_handler(self, attach_peer, drain):
        registry = HandlerRegistry()

        async def fallback(method, params, ctx):
            return {"handled": method}

        registry.fallback_request_handler = fallback
        session = ProtocolSession(handlers=registry)
        _, peer = await attach_peer(session)

        await peer.send(request(1, "anything/goes"))
        await drain()
        assert peer.response_for(1)["result"] == {"handled": "anything/goes"}

    @pytest.mark.asyncio
    async def test_duplicate_in_flight_id_dropped(self, attach_peer, drain):
        registry = HandlerRegistry()
        release = asyncio.Event()

        async def slow(params, ctx):
            await release.wait()
            return "done"

        registry.on_request("slow", slow)
        session = ProtocolSession(handlers=registry)
        errors = []
        session.on_error = errors.append
        _, peer = await attach_peer(session)

        await peer.send(request(1, "slow"))
        await drain()
        await peer.send(request(1, "slow"))
        await drain()

        assert peer.responses() == []
        assert len(errors) == 1
        assert errors[0].code == INVALID_REQUEST

        release.set()
        await drain()
        assert peer.responses() == [{"jsonrpc": "2.0", "id": 1, "result": "done"}]

    @pytest.mark.asyncio
    async def test_peer_cancellation_suppresses_reply(self, attach_peer, drain):
        registry = HandlerRegistry()
        reasons = []

        async def slow(params, ctx):
            reasons.append(await ctx.cancellation.wait())
            return "too late"

        registry.on_request("slow", slow)
        session = ProtocolSession(handlers=registry)
        _, peer = await attach_peer(session)

        await peer.send(request(7, "slow"))
        await drain()
        await peer.send(notification("notifications/cancelled", {"requestId": 7, "reason": "stop"}))
        await drain()

        assert reasons == ["stop"]
        assert peer.response_for(7) is None

    @pytest.mark.asyncio
    async def test_cancellation_for_unknown_request_is_ignored(self, attach_peer, drain):
        session = ProtocolSession()
        _, peer = await attach_peer(session)
        errors = []
        session.on_error = errors.append

        await peer.send(notification("notifications/cancelled", {"requestId": 404}))
        await drain()
        assert errors == []
        assert peer.received == []

    @pytest.mark.asyncio
    async def test_parent_cancellation_cancels_child_request(self, attach_peer, drain):
        registry = HandlerRegistry()

        async def delegate(params, ctx):
            return await ctx.send_request("sampling/createMessage", {})

        registry.on_request("delegate", delegate)
        session = ProtocolSession(handlers=registry)
        _, peer = await attach_peer(session)

        await peer.send(request("parent", "delegate"))
        await drain()
        child = peer.requests("sampling/createMessage")[0]

        await peer.send(notification("notifications/cancelled", {"requestId": "parent"}))
        await drain()

        cancels = peer.notifications("notifications/cancelled")
        assert [c["params"]["requestId"] for c in cancels] == [child["id"]]
        assert peer.response_for("parent") is None

    @pytest.mark.asyncio
    async def test_handler_reports_progress(self, attach_peer, drain):
        registry = HandlerRegistry()

        async def work(params, ctx):
            await ctx.report_progress(1, 2, "half")
            await ctx.report_progress(2, 2)
            return "ok"

        registry.on_request("work", work)
        session = ProtocolSession(handlers=registry)
        _, peer = await attach_peer(session)

        await peer.send(request(1, "work", {"_meta": {"progressToken": "tok"}}))
        await drain()

        progress = [n["params"] for n in peer.notifications("notifications/progress")]
        assert progress == [
            {"progressToken": "tok", "progress": 1, "total": 2, "message": "half"},
            {"progressToken": "tok", "progress": 2, "total": 2},
        ]
        assert peer.response_for(1)["result"] == "ok"

    @pytest.mark.asyncio
    async def test_progress_without_token_is_noop(self, attach_peer, drain):
        registry = HandlerRegistry()

        async def work(params, ctx):
            assert ctx.progress_token is None
            await ctx.report_progress(1)
            return "ok"

        registry.on_request("work", work)
        session = ProtocolSession(handlers=registry)
        _, peer = await attach_peer(session)

        await peer.send(request(1, "work"))
        await drain()
        assert peer.notifications("notifications/progress") == []
        assert peer.response_for(1)["result"] == "ok"


class TestInvalidMessages:
    @pytest.mark.asyncio
    async def test_invalid_with_id_gets_parse_error(self, attach_peer, drain):
        session = ProtocolSession()
        _, peer = await attach_peer(session)
        errors = []
        session.on_error = errors.append

        await peer.send({"jsonrpc": "2.0", "id": 3, "method": "x", "params": [1]})
        await drain()

        assert peer.response_for(3)["error"]["code"] == PARSE_ERROR
        assert len(errors) == 1

    @pytest.mark.asyncio
    async def test_invalid_without_id_is_dropped(self, attach_peer, drain):
        session = ProtocolSession()
        session_end, peer = await attach_peer(session)
        errors = []
        session.on_error = errors.append

        session_end.inject(["not", "an", "object"])
        session_end.inject({"jsonrpc": "1.0", "method": "x"})
        await drain()

        assert peer.received == []
        assert len(errors) == 2
        assert not session.is_closed


class TestNotifications:
    @pytest.mark.asyncio
    async def test_sync_and_async_handlers_run(self, attach_peer, drain):
        registry = HandlerRegistry()
        seen = []

        def sync_handler(params):
            seen.append(("sync", params))

        async def async_handler(params):
            seen.append(("async", params))

        registry.on_notification("notifications/message", sync_handler)
        registry.on_notification("notifications/message", async_handler)
        session = ProtocolSession(handlers=registry)
        _, peer = await attach_peer(session)

        await peer.send(notification("notifications/message", {"level": "info"}))
        await drain()

        assert sorted(kind for kind, _ in seen) == ["async", "sync"]
        assert all(params == {"level": "info"} for _, params in seen)

    @pytest.mark.asyncio
    async def test_failing_handler_is_reported(self, attach_peer, drain):
        registry = HandlerRegistry()

        def broken(params):
            raise RuntimeError("handler bug")

        registry.on_notification("notifications/message", broken)
        session = ProtocolSession(handlers=registry)
        _, peer = await attach_peer(session)
        errors = []
        session.on_error = errors.append

        await peer.send(notification("notifications/message"))
        await drain()

        assert len(errors) == 1
        assert peer.received == []

    @pytest.mark.asyncio
    async def test_fallback_notification_handler(self, attach_peer, drain):
        registry = HandlerRegistry()
        seen = []
        registry.fallback_notification_handler = lambda method, params: seen.append(method)
        session = ProtocolSession(handlers=registry)
        _, peer = await attach_peer(session)

        await peer.send(notification("notifications/whatever"))
        await drain()
        assert seen == ["notifications/whatever"]

    @pytest.mark.asyncio
    async def test_progress_reaches_callback(self, attach_peer, drain):
        session = ProtocolSession()
        _, peer = await attach_peer(session)
        updates = []

        outgoing = session.send("work", {"a": 1}, RequestOptions(on_progress=updates.append))
        await drain()

        sent = peer.requests("work")[0]
        assert sent["params"] == {"a": 1, "_meta": {"progressToken": outgoing.id}}

        await peer.send(
            notification("notifications/progress", {"progressToken": outgoing.id, "progress": 5, "total": 10})
        )
        await peer.send(notification("notifications/progress", {"progressToken": "unknown", "progress": 1}))
        await drain()

        assert updates == [ProgressInfo(progress_token=outgoing.id, progress=5.0, total=10.0)]

    @pytest.mark.asyncio
    async def test_debounced_notifications_coalesce(self, attach_peer, drain):
        method = "notifications/tools/list_changed"
        session = ProtocolSession(options=SessionOptions(debounced_notification_methods=(method,)))
        _, peer = await attach_peer(session)

        for _ in range(3):
            await session.notify(method)
        await drain()
        assert len(peer.notifications(method)) == 1

        # With params the notification is sent every time
        await session.notify(method, {"x": 1})
        await session.notify(method, {"x": 2})
        await drain()
        assert len(peer.notifications(method)) == 3

    @pytest.mark.asyncio
    async def test_notify_sends_immediately(self, attach_peer, drain):
        session = ProtocolSession()
        _, peer = await attach_peer(session)

        await session.notify("notifications/message", {"level": "info", "data": "hi"})
        await drain()
        assert peer.notifications("notifications/message")[0]["params"] == {"level": "info", "data": "hi"}
