from src.legalassist.services.formatter import ChatFormatter
from src.legalassist.services.message_view import render_message, wrap_fragment


def test_writing_message_gets_cursor():
    msg = render_message("**hi**", writing=True, message_id="42")
    assert msg.fragment == "<p><strong>hi</strong></p>"
    assert msg.writing is True
    assert msg.show_cursor is True
    assert msg.html == (
        '<div class="chat-formatter" id="message-42"><p><strong>hi</strong></p><span class="cursor">|</span></div>'
    )


def test_finished_message_has_no_cursor():
    msg = render_message("done")
    assert msg.show_cursor is False
    assert msg.html == '<div class="chat-formatter"><p>done</p></div>'


def test_cursor_does_not_change_fragment():
    assert render_message("## T", writing=True).fragment == render_message("## T").fragment


def test_cursor_glyph_from_env(monkeypatch):
    monkeypatch.setenv("LEGALASSIST_CURSOR_GLYPH", "<|>")
    assert wrap_fragment("", writing=True).endswith('<span class="cursor">&lt;|&gt;</span></div>')


def test_message_id_is_escaped():
    assert 'id="message-a&quot;b"' in wrap_fragment("", message_id='a"b')


def test_invalid_text_renders_empty_container():
    msg = render_message(None, writing=False, message_id="m")
    assert msg.fragment == ""
    assert msg.html == '<div class="chat-formatter" id="message-m"></div>'


def test_explicit_formatter_is_used():
    msg = render_message("&gt; q", formatter=ChatFormatter(escape_html=False))
    assert msg.fragment == "<blockquote>q</blockquote>"
