"""
Terminal session tests, driven through a scripted connector.
"""

import asyncio
import ssl

import pytest

from iristerm.emulation.codec import EncodingMode
from iristerm.exceptions import IrisTermError
from iristerm.protocol.login import LoginPhase, LoginTiming
from iristerm.protocol.negotiator import TransportState
from iristerm.session import (
    BANNER,
    DISCONNECT_LINE,
    SECURE_NOTICE,
    SessionListener,
    TerminalSession,
    terminal_title,
    translate_newlines,
)
from tests.mocks import MockConnection, RecordingListener, settle


def version_mismatch():
    return ssl.SSLError(1, "[SSL: WRONG_VERSION_NUMBER] wrong version number")


async def open_plaintext(connector, make_config, listener, *chunks, **config):
    """Open a session whose TLS attempt is refused; returns (session, stream)."""
    plain = MockConnection(list(chunks))
    connector.outcomes += [version_mismatch(), plain]
    session = TerminalSession(make_config(**config), [listener])
    session.open()
    await settle()
    return session, plain


class TestHelpers:
    def test_title_without_context(self):
        assert terminal_title("dev") == "IRIS: dev"

    def test_title_with_context(self):
        assert terminal_title("dev", "USER") == "IRIS: dev (USER)"

    def test_bare_newlines_expanded(self):
        assert translate_newlines("a\nb\r\nc\n") == "a\r\nb\r\nc\r\n"


@pytest.mark.asyncio
class TestLifecycle:
    async def test_banner_shown_first(self, connector, make_config, listener):
        session, _ = await open_plaintext(connector, make_config, listener)
        assert listener.events[0] == (
            "display",
            BANNER.format(name="dev", encoding="UTF8"),
        )
        session.close()

    async def test_banner_names_legacy_encoding(self, connector, make_config, listener):
        session, _ = await open_plaintext(
            connector, make_config, listener, encoding=EncodingMode.LEGACY_8BIT
        )
        assert "[LEGACY8BIT]" in listener.events[0][1]
        session.close()

    async def test_fallback_is_silent(self, connector, make_config, listener):
        session, _ = await open_plaintext(
            connector, make_config, listener, b"Username: "
        )
        assert listener.of_kind("error") == []
        assert SECURE_NOTICE not in listener.text
        assert session.transport_state is TransportState.PLAINTEXT
        assert session.connected
        session.close()

    async def test_secure_notice_precedes_first_output(
        self, connector, make_config, listener
    ):
        connector.outcomes += [MockConnection([b"Username: "])]
        session = TerminalSession(make_config(), [listener])
        session.open()
        await settle()

        texts = [e[1] for e in listener.of_kind("display")]
        assert texts[1:] == [SECURE_NOTICE, "Username: "]
        assert session.transport_state is TransportState.SECURE
        session.close()

    async def test_connection_failure_reports_error_and_closes(
        self, connector, make_config, listener
    ):
        connector.outcomes += [ConnectionRefusedError(111, "Connection refused")]
        session = TerminalSession(make_config(), [listener])
        session.open()
        await session.wait_closed()

        errors = listener.of_kind("error")
        assert len(errors) == 1
        assert "Secure connection failed" in errors[0][1]
        assert "Context" not in errors[0][1]
        assert "\x1b[31m[ERROR]: " in listener.text
        assert DISCONNECT_LINE not in listener.text
        assert listener.of_kind("closed") == [("closed",)]
        assert listener.events[-1] == ("closed",)

    async def test_disconnect_shown_after_data(self, connector, make_config, listener):
        session, plain = await open_plaintext(
            connector, make_config, listener, b"bye\r\n"
        )
        plain.reader.feed_eof()
        await session.wait_closed()

        assert listener.text.endswith(DISCONNECT_LINE)
        assert listener.of_kind("error") == []
        assert len(listener.of_kind("closed")) == 1

    async def test_close_twice_reports_once(self, connector, make_config, listener):
        session, _ = await open_plaintext(connector, make_config, listener)
        session.close()
        session.close()
        await session.wait_closed()
        await settle()

        assert len(listener.of_kind("closed")) == 1
        assert session.transport_state is TransportState.CLOSED

    async def test_close_before_open(self, make_config, listener):
        session = TerminalSession(make_config(), [listener])
        session.close()
        await session.wait_closed()
        assert listener.events == []
        assert session.transport_state is TransportState.CLOSED

    async def test_open_after_close_raises(self, connector, make_config, listener):
        session = TerminalSession(make_config(), [listener])
        session.close()
        with pytest.raises(IrisTermError):
            session.open()
        await session.wait_closed()

        assert listener.events == []
        assert connector.calls == []
        assert session.negotiator is None

    async def test_open_twice_raises(self, connector, make_config, listener):
        session, _ = await open_plaintext(connector, make_config, listener)
        with pytest.raises(IrisTermError):
            session.open()
        session.close()

    async def test_async_context_manager(self, connector, make_config, listener):
        connector.outcomes += [version_mismatch(), MockConnection([b"USER>"])]
        async with TerminalSession(make_config(), [listener]) as session:
            await settle()
            assert session.connected
        assert listener.events[-1] == ("closed",)
        assert not session.connected


@pytest.mark.asyncio
class TestLogin:
    async def test_scripted_login(self, connector, make_config, listener):
        session, plain = await open_plaintext(
            connector,
            make_config,
            listener,
            username="bob",
            password="pw",
            namespace="USER",
        )
        for chunk in (b"Username: ", b"Password: ", b"\r\nUSER>"):
            plain.reader.feed(chunk)
            await settle()

        assert plain.writer.written_data == [b"bob\r\n", b"pw\r\n", b'zn "USER"\r\n']
        assert session.login_phase is LoginPhase.DONE
        session.close()

    async def test_login_waits_for_delay(self, connector, make_config, listener):
        session, plain = await open_plaintext(
            connector,
            make_config,
            listener,
            b"login: ",
            username="bob",
            login_timing=LoginTiming(credential_delay=0.05, context_delay=0.05),
        )
        assert plain.writer.written_data == []

        await asyncio.sleep(0.1)
        assert plain.writer.written_data == [b"bob\r\n"]
        session.close()

    async def test_close_cancels_pending_login_write(
        self, connector, make_config, listener
    ):
        session, plain = await open_plaintext(
            connector,
            make_config,
            listener,
            b"login: ",
            username="bob",
            login_timing=LoginTiming(credential_delay=0.05, context_delay=0.05),
        )
        session.close()
        await asyncio.sleep(0.1)
        assert plain.writer.written_data == []

    async def test_no_credentials_means_no_writes(
        self, connector, make_config, listener
    ):
        session, plain = await open_plaintext(
            connector, make_config, listener, b"Username: ", b"Password: ", b"USER>"
        )
        await settle()
        assert plain.writer.written_data == []
        session.close()


@pytest.mark.asyncio
class TestOutput:
    async def test_context_change_updates_title(self, connector, make_config, listener):
        session, plain = await open_plaintext(
            connector, make_config, listener, b"USER>", namespace="user"
        )
        assert session.last_known_context == "USER"
        assert listener.of_kind("context") == []

        plain.reader.feed(b'zn "%SYS"\r\n%SYS>')
        await settle()

        assert listener.of_kind("context") == [("context", "%SYS")]
        assert session.title == "IRIS: dev (%SYS)"
        session.close()

    async def test_repeated_prompt_does_not_renotify(
        self, connector, make_config, listener
    ):
        session, plain = await open_plaintext(connector, make_config, listener)
        for chunk in (b"USER>", b"\r\nUSER>", b"\r\nuser>"):
            plain.reader.feed(chunk)
            await settle()
        assert listener.of_kind("context") == [("context", "USER")]
        session.close()

    async def test_bare_newlines_displayed_as_crlf(
        self, connector, make_config, listener
    ):
        session, _ = await open_plaintext(
            connector, make_config, listener, b"a\nb\r\nc"
        )
        assert listener.text.endswith("a\r\nb\r\nc")
        session.close()

    async def test_split_utf8_sequence(self, connector, make_config, listener):
        session, plain = await open_plaintext(connector, make_config, listener)
        plain.reader.feed(b"\xd7")
        await settle()
        plain.reader.feed(b"\xa9")
        await settle()
        assert listener.text.endswith("ש")
        assert "�" not in listener.text
        session.close()

    async def test_legacy_hebrew_round_trip(self, connector, make_config, listener):
        session, plain = await open_plaintext(
            connector,
            make_config,
            listener,
            b"\x99\x8c\x85\x8d",
            encoding=EncodingMode.LEGACY_8BIT,
        )
        assert listener.text.endswith("שלום")

        session.handle_input("שלום")
        assert plain.writer.written_data == [b"\x99\x8c\x85\x8d"]
        session.close()

    async def test_listener_failure_is_isolated(self, connector, make_config, listener):
        class Broken(SessionListener):
            def on_display_text(self, text):
                raise RuntimeError("boom")

        connector.outcomes += [version_mismatch(), MockConnection([b"hello"])]
        session = TerminalSession(make_config(), [Broken(), listener])
        session.open()
        await settle()

        assert listener.text.endswith("hello")
        session.close()

    async def test_removed_listener_gets_nothing(self, connector, make_config):
        first, second = RecordingListener(), RecordingListener()
        connector.outcomes += [version_mismatch(), MockConnection()]
        session = TerminalSession(make_config(), [first])
        session.add_listener(second)
        session.add_listener(second)
        session.remove_listener(first)
        session.open()
        await settle()
        session.close()

        assert first.events == []
        assert len(second.of_kind("closed")) == 1


@pytest.mark.asyncio
class TestInput:
    async def test_delete_sent_as_backspace(self, connector, make_config, listener):
        session, plain = await open_plaintext(connector, make_config, listener)
        session.handle_input("ab\x7f\r\n")
        assert plain.writer.written_data == [b"ab\x08\r\n"]
        session.close()

    async def test_input_dropped_before_open(self, make_config, listener):
        session = TerminalSession(make_config(), [listener])
        session.handle_input("w 1\r\n")
        assert not session.connected

    async def test_input_dropped_after_close(self, connector, make_config, listener):
        session, plain = await open_plaintext(connector, make_config, listener)
        session.close()
        session.handle_input("w 1\r\n")
        assert plain.writer.written_data == []
