from __future__ import annotations

"""Chat message formatter.

Turns the markdown-like dialect streamed by the assistant into an HTML
fragment. The formatter is called again on every streamed token with the
whole buffer, so every call starts from scratch and unfinished markers
(a lone ``*``, an open code fence) must come out as literal text.

Formatting runs in two phases:

1. Protection: code fences, inline code and link targets are rendered and
   swapped for opaque placeholders before anything else runs, so no later
   rule can reach into code or rewrite a URL.
2. Rewrites: the ordered ``RewriteRule`` list runs over the escaped,
   placeholder-protected text, then paragraphs are assembled and the
   placeholders restored.

The formatter HTML-escapes plain text itself before phase 2. The blockquote
rule therefore matches the escaped ``&gt; `` prefix. Callers that disable
escaping must hand in text that is already escaped.

Known limitation: emphasis markers that overlap without nesting (for
example ``*a **b** c*``) keep the outer markers as literal text rather than
produce mis-nested tags.
"""

import html
import logging
import os
import re
import time
from dataclasses import dataclass
from re import Match, Pattern
from typing import Any, Callable, List, Optional, Tuple, Union

from ..observability.metrics import FORMAT_LATENCY, record_formatter_failure

LOG = logging.getLogger("legalassist.formatter")

Escape = Callable[[str], str]
Replacement = Union[str, Callable[[Match[str]], str]]

_PLACEHOLDER_RE = re.compile(r"\x00([IBU])(\d+)\x00")
_BLOCK_PLACEHOLDER_RE = re.compile(r"\x00B\d+\x00")
_BLANK_LINE_RE = re.compile(r"\n[ \t]*\n")
_HEADING_LINE_RE = re.compile(r"^<h([23])>.*</h\1>$")
_QUOTE_LINE_RE = re.compile(r"^<blockquote>(.*)</blockquote>$")
_URL_SCHEME_RE = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.-]*):")
_TAG_RE = re.compile(r"<(/?)([a-z][a-z0-9]*)[^>]*>")
_BARE_HEADING_BEFORE_BLOCK_RE = re.compile(r"^#{2,3}[ \t]+(?=\x00B\d+\x00)", re.MULTILINE)

SAFE_LINK_SCHEMES = frozenset({"http", "https", "mailto"})


@dataclass(frozen=True)
class RewriteRule:
    """One ordered substitution over placeholder-protected, escaped text."""

    name: str
    pattern: Pattern[str]
    replacement: Replacement

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


@dataclass(frozen=True)
class ProtectedRule:
    """A rule whose output is frozen behind a placeholder.

    ``render`` receives the match and the escape function in use and returns
    final markup, or None to leave the match as plain text. Only ``group`` of
    the match is swapped out (0 is the whole match). ``marker`` tags the
    placeholder: ``B`` placeholders always form their own paragraph, ``U``
    marks a link target.
    """

    name: str
    pattern: Pattern[str]
    render: Callable[[Match[str], Escape], Optional[str]]
    marker: str = "I"
    group: int = 0


@dataclass(frozen=True)
class RuleSet:
    protected: Tuple[ProtectedRule, ...]
    rewrites: Tuple[RewriteRule, ...]


# --- protection rules ---


def _is_safe_url(url: str) -> bool:
    scheme = _URL_SCHEME_RE.match(html.unescape(url))
    if scheme is None:
        return True
    return scheme.group(1).lower() in SAFE_LINK_SCHEMES


def _render_fence(match: Match[str], escape: Escape) -> str:
    lang = match.group(1)
    code = match.group(2)
    if code.endswith("\n"):
        code = code[:-1]
    css = f' class="language-{escape(lang)}"' if lang else ""
    return f"<pre><code{css}>{escape(code)}</code></pre>"


def _render_open_fence(match: Match[str], escape: Escape) -> str:
    # Still streaming: show the fence verbatim until its closer arrives
    return escape(match.group(0)).replace("\n", "<br>")


def _render_inline_code(match: Match[str], escape: Escape) -> str:
    return f"<code>{escape(match.group(1))}</code>"


def _render_link_target(match: Match[str], escape: Escape) -> Optional[str]:
    url = match.group(1)
    if not _is_safe_url(url):
        return None
    return escape(url)


# --- rewrite rules ---


def _heading(match: Match[str]) -> str:
    level = len(match.group(1))
    return f"<h{level}>{match.group(2)}</h{level}>"


def _tags_balanced(fragment: str) -> bool:
    stack: List[str] = []
    for tag in _TAG_RE.finditer(fragment):
        if not tag.group(1):
            stack.append(tag.group(2))
        elif not stack or stack.pop() != tag.group(2):
            return False
    return not stack


def _wrap(tag: str) -> Callable[[Match[str]], str]:
    def replace(match: Match[str]) -> str:
        inner = match.group(1)
        if not _tags_balanced(inner):
            return match.group(0)
        return f"<{tag}>{inner}</{tag}>"

    return replace


def _link(match: Match[str]) -> str:
    label, url = match.group(1), match.group(2)
    if not _tags_balanced(label):
        return match.group(0)
    return f'<a href="{url}" target="_blank" rel="noopener noreferrer">{label}</a>'


def build_default_rules() -> RuleSet:
    protected = (
        # Fences first: the inline rule would otherwise split them on single backticks
        ProtectedRule(
            "code_block",
            re.compile(r"```(?:([\w+#.-]+)?[ \t]*\n)?(.*?)```", re.DOTALL),
            _render_fence,
            marker="B",
        ),
        ProtectedRule("open_code_block", re.compile(r"```.*\Z", re.DOTALL), _render_open_fence),
        ProtectedRule("inline_code", re.compile(r"(?<!`)`([^`\n]+)`(?!`)"), _render_inline_code),
        # Link targets after code, so a link shown inside code stays code
        ProtectedRule(
            "link_target",
            re.compile(r'\[[^\]\n]+\]\(([^()\s<>"\x00]+)\)'),
            _render_link_target,
            marker="U",
            group=1,
        ),
    )
    rewrites = (
        # Line-anchored, so it has to see the markers before emphasis does
        RewriteRule("heading", re.compile(r"^(#{2,3})[ \t]+(\S.*?)[ \t]*$", re.MULTILINE), _heading),
        RewriteRule(
            "bold_italic",
            re.compile(r"(?<!\*)\*\*\*(?![\s*])([^*\n<>]+?)(?<![\s*])\*\*\*(?!\*)"),
            r"<strong><em>\1</em></strong>",
        ),
        RewriteRule("bold", re.compile(r"\*\*(?=\S)(.+?)(?<=\S)\*\*"), _wrap("strong")),
        RewriteRule("bold_underscore", re.compile(r"(?<!\w)__(?=\S)(.+?)(?<=\S)__(?!\w)"), _wrap("strong")),
        # Italic content may not contain markup, so it can never straddle a tag
        RewriteRule("italic", re.compile(r"(?<!\*)\*(?![\s*])([^*\n<>]+?)(?<![\s*])\*(?!\*)"), r"<em>\1</em>"),
        RewriteRule(
            "italic_underscore",
            re.compile(r"(?<![\w_])_(?![\s_])([^_\n<>]+?)(?<![\s_])_(?![\w_])"),
            r"<em>\1</em>",
        ),
        RewriteRule("strikethrough", re.compile(r"~~(?=\S)(.+?)(?<=\S)~~"), _wrap("del")),
        RewriteRule("blockquote", re.compile(r"^&gt;[ \t](.*)$", re.MULTILINE), r"<blockquote>\1</blockquote>"),
        RewriteRule("link", re.compile(r"\[([^\]\n]+)\]\((\x00U\d+\x00)\)"), _link),
    )
    return RuleSet(protected=protected, rewrites=rewrites)


DEFAULT_RULES = build_default_rules()


def _escape(text: str) -> str:
    return html.escape(text, quote=True)


def _no_escape(text: str) -> str:
    return text


def strip_wrapping_quotes(text: str) -> str:
    """Drop one pair of double quotes wrapping the whole text, if present."""
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        return text[1:-1]
    return text


class ChatFormatter:
    def __init__(self, rules: RuleSet = DEFAULT_RULES, *, escape_html: bool = True) -> None:
        self._rules = rules
        self._escape_html = escape_html
        self._esc: Escape = _escape if escape_html else _no_escape

    @property
    def rules(self) -> RuleSet:
        return self._rules

    @property
    def escape_html(self) -> bool:
        return self._escape_html

    def format(self, text: Any, streaming: bool = False) -> str:
        """Format ``text`` into an HTML fragment.

        ``streaming`` is advisory: it tells the caller whether to draw a cursor
        after the fragment and never changes the fragment itself.

        Non-string input returns ``""``. If a rule blows up, the original text
        is returned (escaped when escaping is on) instead of partial output.
        """
        if not isinstance(text, str):
            LOG.warning("formatter_invalid_input", extra={"input_type": type(text).__name__})
            record_formatter_failure("invalid_input")
            return ""

        start = time.perf_counter()
        try:
            return self._run(text)
        except Exception:
            LOG.warning(
                "formatter_rule_failure",
                exc_info=True,
                extra={"input_length": len(text), "streaming": streaming},
            )
            record_formatter_failure("transformation")
            return self._esc(text)
        finally:
            FORMAT_LATENCY.observe(time.perf_counter() - start)

    def _run(self, text: str) -> str:
        source = strip_wrapping_quotes(text).replace("\r\n", "\n").replace("\x00", "")
        store: List[str] = []
        protected = self._protect(source, store)
        # A heading marker with only a code block after it has nothing to title
        protected = _BARE_HEADING_BEFORE_BLOCK_RE.sub("", protected)
        # Code blocks stand alone, so no inline rule can wrap one
        protected = _BLOCK_PLACEHOLDER_RE.sub(lambda m: f"\n\n{m.group(0)}\n\n", protected)
        body = self._esc(protected)
        for rule in self._rules.rewrites:
            body = rule.apply(body)
        body = self._assemble(body)
        return _PLACEHOLDER_RE.sub(lambda m: store[int(m.group(2))], body)

    def _protect(self, text: str, store: List[str]) -> str:
        for rule in self._rules.protected:

            def _stash(match: Match[str], rule: ProtectedRule = rule) -> str:
                rendered = rule.render(match, self._esc)
                if rendered is None:
                    return match.group(0)
                store.append(rendered)
                token = f"\x00{rule.marker}{len(store) - 1}\x00"
                if not rule.group:
                    return token
                whole, base = match.group(0), match.start()
                start, end = match.span(rule.group)
                return whole[: start - base] + token + whole[end - base :]

            text = rule.pattern.sub(_stash, text)
        return text

    def _assemble(self, text: str) -> str:
        parts: List[str] = []
        for block in _BLANK_LINE_RE.split(text):
            if block.strip():
                parts.extend(_assemble_block(block))
        return "".join(parts)


def _assemble_block(block: str) -> List[str]:
    parts: List[str] = []
    paragraph: List[str] = []
    quote: List[str] = []

    def flush() -> None:
        if paragraph:
            parts.append("<p>" + "<br>".join(paragraph) + "</p>")
            paragraph.clear()
        if quote:
            parts.append("<blockquote>" + "<br>".join(quote) + "</blockquote>")
            quote.clear()

    for raw_line in block.split("\n"):
        line = raw_line.strip()
        if not line:
            continue
        if _HEADING_LINE_RE.match(line) or _BLOCK_PLACEHOLDER_RE.fullmatch(line):
            flush()
            parts.append(line)
            continue
        quoted = _QUOTE_LINE_RE.match(line)
        if quoted:
            if paragraph:
                flush()
            quote.append(quoted.group(1))
            continue
        if quote:
            flush()
        paragraph.append(line)
    flush()
    return parts


_formatter: Optional[ChatFormatter] = None


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off")


def get_formatter() -> ChatFormatter:
    global _formatter
    if _formatter is not None:
        return _formatter
    escape_html = _env_flag("LEGALASSIST_FORMATTER_ESCAPE_HTML", True)
    if not escape_html:
        LOG.info("formatter_escaping_disabled")
    _formatter = ChatFormatter(DEFAULT_RULES, escape_html=escape_html)
    return _formatter


def format_message(text: Any, streaming: bool = False) -> str:
    return get_formatter().format(text, streaming)
