"""Tests for the Junos NETCONF session with the transport patched out."""
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from ncclient import NCClientError
from ncclient.operations import RaiseMode, RPCError
from ncclient.transport.errors import AuthenticationError
from ncclient.xml_ import to_ele

from junos_send.devices import create_session, JunosNetconfSession
from junos_send.devices.base import (
    Credentials,
    DeviceConnectionError,
    Operation,
    OperationError,
    SessionConfig,
)
from junos_send.devices.junos import (
    COMPARE_RPC,
    command_rpc,
    commit_rpc,
    load_set_rpc,
    reply_payload,
)

NC_NS = "urn:ietf:params:xml:ns:netconf:base:1.0"


def rpc_reply(body, errors=()):
    return SimpleNamespace(xml=f'<rpc-reply xmlns="{NC_NS}">{body}</rpc-reply>', errors=list(errors))


@pytest.fixture
def session():
    config = SessionConfig(host="10.0.0.1", retries=1, retry_delay=0.01)
    return JunosNetconfSession(config, Credentials("admin", "secret"))


@pytest.fixture
def connect():
    with patch("junos_send.devices.junos.manager.connect") as mock_connect:
        conn = MagicMock()
        conn.dispatch.return_value = rpc_reply("<ok/>")
        mock_connect.return_value = conn
        yield mock_connect


class TestRpcBuilders:
    """Tests for raw RPC payloads."""

    def test_load_set_joins_in_order(self):
        rpc = load_set_rpc(["set system host-name r1", "delete system ntp"])
        assert rpc == (
            '<load-configuration action="set" format="text">'
            "<configuration-set>set system host-name r1\ndelete system ntp</configuration-set>"
            "</load-configuration>"
        )

    def test_load_set_escapes_markup(self):
        rpc = load_set_rpc(['set interfaces ge-0/0/0 description "a<b & c"'])
        assert "a&lt;b &amp; c" in rpc
        to_ele(rpc)

    def test_commit_with_comment(self):
        assert commit_rpc("CHG-1") == "<commit-configuration><log>CHG-1</log></commit-configuration>"

    def test_commit_without_comment(self):
        assert commit_rpc("") == "<commit-configuration/>"

    def test_command(self):
        assert command_rpc("show route 10/8 | match <x>") == (
            '<command format="ascii">show route 10/8 | match &lt;x&gt;</command>'
        )


class TestReplyPayload:
    """Tests for stripping the rpc-reply envelope."""

    def test_inner_content(self):
        payload = reply_payload(f'<rpc-reply xmlns="{NC_NS}"><output>up</output></rpc-reply>')
        assert "rpc-reply" not in payload
        assert payload.startswith("<output")
        assert ">up</output>" in payload

    def test_empty_reply(self):
        assert reply_payload(f'<rpc-reply xmlns="{NC_NS}"/>') == ""

    def test_not_xml_returned_as_is(self):
        assert reply_payload("plain text") == "plain text"


class TestOpen:
    """Tests for connection setup."""

    @pytest.mark.asyncio
    async def test_connect_arguments(self, session, connect):
        await session.open()

        kwargs = connect.call_args.kwargs
        assert kwargs["host"] == "10.0.0.1"
        assert kwargs["port"] == 830
        assert kwargs["username"] == "admin"
        assert kwargs["password"] == "secret"
        assert kwargs["hostkey_verify"] is False
        assert kwargs["device_params"] == {"name": "junos"}
        assert session.is_open
        assert connect.return_value.raise_mode == RaiseMode.ERRORS

    @pytest.mark.asyncio
    async def test_open_twice_connects_once(self, session, connect):
        await session.open()
        await session.open()
        assert connect.call_count == 1

    @pytest.mark.asyncio
    async def test_authentication_failure(self, session, connect):
        connect.side_effect = AuthenticationError("bad password")

        with pytest.raises(DeviceConnectionError) as exc_info:
            await session.open()

        assert "authentication failed" in exc_info.value.message
        assert exc_info.value.host == "10.0.0.1"
        assert not session.is_open

    @pytest.mark.asyncio
    async def test_unreachable(self, session, connect):
        connect.side_effect = ConnectionRefusedError("Connection refused")

        with pytest.raises(DeviceConnectionError):
            await session.open()

    @pytest.mark.asyncio
    async def test_transient_failure_retried(self, connect):
        config = SessionConfig(host="10.0.0.1", retries=2, retry_delay=0.01)
        session = JunosNetconfSession(config, Credentials("admin", "secret"))
        conn = connect.return_value
        connect.side_effect = [ConnectionResetError("reset"), conn]

        await session.open()

        assert connect.call_count == 2
        assert session.is_open


class TestExecute:
    """Tests for RPC dispatch."""

    @pytest.mark.asyncio
    async def test_not_open(self, session):
        with pytest.raises(OperationError) as exc_info:
            await session.lock()
        assert exc_info.value.operation == Operation.LOCK

    @pytest.mark.asyncio
    async def test_reply_wrapped(self, session, connect):
        conn = connect.return_value
        conn.dispatch.return_value = rpc_reply("<output>\nHostname: r1\n</output>")
        await session.open()

        reply = await session.command("show version")

        assert reply.operation == Operation.COMMAND
        assert "Hostname: r1" in reply.data
        assert reply.warnings == ()
        sent = conn.dispatch.call_args.args[0]
        assert sent.tag == "command"
        assert sent.text == "show version"

    @pytest.mark.asyncio
    async def test_compare_rpc(self, session, connect):
        conn = connect.return_value
        await session.open()

        await session.compare()

        sent = conn.dispatch.call_args.args[0]
        assert sent.tag == to_ele(COMPARE_RPC).tag
        assert sent.get("compare") == "rollback"
        assert sent.get("rollback") == "0"

    @pytest.mark.asyncio
    async def test_warnings_collected(self, session, connect):
        conn = connect.return_value
        warning = SimpleNamespace(severity="warning", message="statement not found")
        conn.dispatch.return_value = rpc_reply("<load-configuration-results/>", [warning])
        await session.open()

        reply = await session.load_set(["delete system ntp server 10.9.9.9"])

        assert reply.warnings == ("statement not found",)

    @pytest.mark.asyncio
    async def test_rpc_error(self, session, connect):
        raw = to_ele(
            f'<rpc-error xmlns="{NC_NS}">'
            "<error-type>protocol</error-type>"
            "<error-tag>operation-failed</error-tag>"
            "<error-severity>error</error-severity>"
            "<error-message>syntax error</error-message>"
            "</rpc-error>"
        )
        connect.return_value.dispatch.side_effect = RPCError(raw)
        await session.open()

        with pytest.raises(OperationError) as exc_info:
            await session.load_set(["set bogus"])

        assert exc_info.value.operation == Operation.LOAD
        assert "syntax error" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_unencodable_command(self, session, connect):
        """Characters XML cannot carry fail the operation, not the run."""
        await session.open()

        with pytest.raises(OperationError) as exc_info:
            await session.command("show version\x0b")

        assert exc_info.value.operation == Operation.COMMAND
        assert "cannot encode request" in exc_info.value.message
        connect.return_value.dispatch.assert_not_called()

    @pytest.mark.asyncio
    async def test_unencodable_load(self, session, connect):
        await session.open()

        with pytest.raises(OperationError) as exc_info:
            await session.load_set(["set system host-name r1\x00"])

        assert exc_info.value.operation == Operation.LOAD

    @pytest.mark.asyncio
    async def test_transport_error(self, session, connect):
        connect.return_value.dispatch.side_effect = NCClientError("session closed")
        await session.open()

        with pytest.raises(OperationError) as exc_info:
            await session.commit("CHG-1")

        assert exc_info.value.operation == Operation.COMMIT


class TestClose:
    """Tests for session teardown."""

    @pytest.mark.asyncio
    async def test_close_idempotent(self, session, connect):
        await session.open()

        await session.close()
        await session.close()

        assert connect.return_value.close_session.call_count == 1
        assert not session.is_open

    @pytest.mark.asyncio
    async def test_close_error_ignored(self, session, connect):
        connect.return_value.close_session.side_effect = EOFError()
        await session.open()

        await session.close()

        assert not session.is_open

    @pytest.mark.asyncio
    async def test_context_manager(self, connect):
        config = SessionConfig(host="10.0.0.2", retries=1)
        async with create_session(config, Credentials("admin", "secret")) as session:
            assert session.is_open
        assert not session.is_open


class TestCreateSession:
    """Tests for the session factory."""

    def test_junos(self):
        session = create_session(SessionConfig(host="10.0.0.1"), Credentials("a", "b"))
        assert isinstance(session, JunosNetconfSession)
        assert session.device_id == "10.0.0.1"

    def test_unknown_platform(self):
        with pytest.raises(ValueError):
            create_session(SessionConfig(host="10.0.0.1"), Credentials("a", "b"), platform="eos")

    def test_password_not_in_repr(self):
        assert "secret" not in repr(Credentials("admin", "secret"))
