"""
Pull embedded client state and login form data out of server-rendered HTML.

Bootstrap pages ship their client state as inline scripts such as::

    window.netflix = window.netflix || {} ;
    netflix.reactContext = {"models": {...}};

Only declarative assignments like these are ever consumed, so instead of
running the scripts we read them with a small literal-data reader. It knows
assignments to paths rooted in the ``window`` and ``netflix`` namespaces,
JS literals, namespace lookups and ``||``. Anything else stops reading of
that script; nothing is ever executed.
"""
import logging
import math
import re

from selectolax.parser import HTMLParser

from .config import CONTEXT_SCRIPT_SENTINEL

logger = logging.getLogger(__name__)

NAMESPACES = ("window", "netflix")

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>[ \t\r\f\v\ufeff\u00a0]+|/\*.*?\*/|//[^\n]*)
  | (?P<newline>[\n\u2028\u2029])
  | (?P<number>-?(?:0[xX][0-9a-fA-F]+|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?))
  | (?P<string>"(?:[^"\\\n]|\\.)*"|'(?:[^'\\\n]|\\.)*')
  | (?P<name>[A-Za-z_$][\w$]*)
  | (?P<op>\|\||[{}\[\]():;,.=])
    """,
    re.VERBOSE | re.DOTALL,
)

_ESCAPE_RE = re.compile(
    r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|\r\n|.)", re.DOTALL
)

_SIMPLE_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0",
}

_DECLARATIONS = {"var", "let", "const"}

# Deepest object/array/paren nesting the reader follows
MAX_NESTING = 64

_SURROGATE_PAIR_RE = re.compile("[\ud800-\udbff][\udc00-\udfff]")


class _Undefined:
    def __repr__(self):
        return "undefined"


UNDEFINED = _Undefined()

_KEYWORD_VALUES = {
    "true": True,
    "false": False,
    "null": None,
    "undefined": UNDEFINED,
    "NaN": math.nan,
    "Infinity": math.inf,
}


class UnsupportedScript(ValueError):
    """The script uses a construct the literal reader does not understand."""


def _unescape_match(match: re.Match) -> str:
    seq = match.group(1)
    try:
        if seq.startswith("u{"):
            return chr(int(seq[2:-1], 16))
        if seq[0] in "ux" and len(seq) > 1:
            return chr(int(seq[1:], 16))
    except (ValueError, OverflowError):
        raise UnsupportedScript(f"Escape out of range: \\{seq}") from None
    if seq in ("\n", "\r\n", "\r", "\u2028", "\u2029"):
        return ""
    return _SIMPLE_ESCAPES.get(seq, seq)


def _join_surrogates(match: re.Match) -> str:
    high, low = match.group()
    return chr(0x10000 + ((ord(high) - 0xD800) << 10) + (ord(low) - 0xDC00))


def _unquote(raw: str) -> str:
    text = _ESCAPE_RE.sub(_unescape_match, raw[1:-1])
    # \uD83D\uDE00 style pairs arrive as two surrogates; unpaired ones are kept as is
    return _SURROGATE_PAIR_RE.sub(_join_surrogates, text)


def _parse_number(raw: str) -> int | float:
    sign = -1 if raw.startswith("-") else 1
    body = raw.lstrip("-")
    if body[:2].lower() == "0x":
        return sign * int(body, 16)
    if any(c in body for c in ".eE"):
        return sign * float(body)
    return sign * int(body)


def _js_truthy(value) -> bool:
    if value is UNDEFINED or value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    return True


def _plain(value):
    """Replace ``undefined`` with ``None`` so the tree is JSON-like."""
    return None if value is UNDEFINED else value


def tokenize(source: str) -> list[tuple[str, str, bool]]:
    """Split ``source`` into ``(kind, text, newline_before)`` tokens.

    Tokenizing stops at the first character outside the supported subset,
    which is kept as a single ``error`` token.
    """
    tokens = []
    pos = 0
    newline_before = False
    while pos < len(source):
        match = _TOKEN_RE.match(source, pos)
        if not match:
            # Reported by the reader once it gets this far
            tokens.append(("error", source[pos], newline_before))
            break
        kind = match.lastgroup
        text = match.group()
        pos = match.end()
        if kind == "ws":
            if "\n" in text:
                newline_before = True
            continue
        if kind == "newline":
            newline_before = True
            continue
        tokens.append((kind, text, newline_before))
        newline_before = False
    return tokens


class LiteralReader:
    """Apply the declarative assignments of one script to ``namespaces``."""

    def __init__(self, source: str, namespaces: dict):
        self.tokens = tokenize(source)
        self.pos = 0
        self.namespaces = namespaces
        self.depth = 0

    # token helpers

    def _peek(self, offset: int = 0):
        index = self.pos + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def _at(self, text: str) -> bool:
        token = self._peek()
        return token is not None and token[0] in ("op", "name") and token[1] == text

    def _next(self):
        token = self._peek()
        if token is None:
            raise UnsupportedScript("Unexpected end of script")
        self.pos += 1
        return token

    def _expect(self, text: str) -> None:
        kind, value, _ = self._next()
        if value != text or kind not in ("op", "name"):
            raise UnsupportedScript(f"Expected {text!r}, got {value!r}")

    # statements

    def run(self) -> None:
        while self._peek() is not None:
            if self._at(";"):
                self.pos += 1
                continue
            self._statement()

    def _statement(self) -> None:
        kind, value, _ = self._peek()
        if kind == "name" and value in _DECLARATIONS:
            self.pos += 1
            kind, _, _ = self._next()
            if kind != "name":
                raise UnsupportedScript("Expected a variable name")
            if self._at("="):
                self.pos += 1
                self._expression()
        else:
            path = self._path()
            self._expect("=")
            self._assign(path, self._expression())
        self._end_statement()

    def _end_statement(self) -> None:
        token = self._peek()
        if token is None:
            return
        if self._at(";"):
            self.pos += 1
            return
        if token[2]:
            return
        raise UnsupportedScript(f"Unexpected {token[1]!r} after statement")

    # paths

    def _path(self) -> list:
        kind, root, _ = self._next()
        if kind != "name" or root not in self.namespaces:
            raise UnsupportedScript(f"Assignment outside the known namespaces: {root!r}")
        path = [root]
        while True:
            if self._at("."):
                self.pos += 1
                kind, name, _ = self._next()
                if kind != "name":
                    raise UnsupportedScript(f"Expected a property name, got {name!r}")
                path.append(name)
            elif self._at("["):
                self.pos += 1
                key = self._property_key()
                self._expect("]")
                path.append(key)
            else:
                return path

    def _property_key(self) -> str:
        kind, text, _ = self._next()
        if kind == "string":
            return _unquote(text)
        if kind == "number":
            return str(_parse_number(text))
        raise UnsupportedScript(f"Unsupported property key {text!r}")

    def _lookup(self, path: list):
        node = self.namespaces[path[0]]
        for key in path[1:]:
            if not isinstance(node, dict) or key not in node:
                return UNDEFINED
            node = node[key]
        return node

    def _assign(self, path: list, value) -> None:
        value = _plain(value)
        if len(path) == 1:
            if not isinstance(value, dict):
                raise UnsupportedScript(f"Cannot replace namespace {path[0]!r} with a non-object")
            self.namespaces[path[0]] = value
            return
        node = self.namespaces[path[0]]
        for key in path[1:-1]:
            child = node.get(key)
            if not isinstance(child, dict):
                child = {}
                node[key] = child
            node = child
        node[path[-1]] = value

    # expressions

    def _expression(self):
        value = self._primary()
        while self._at("||"):
            self.pos += 1
            right = self._primary()
            if not _js_truthy(value):
                value = right
        return value

    def _primary(self):
        kind, text, _ = self._peek() or (None, None, None)
        if kind is None:
            raise UnsupportedScript("Unexpected end of script")
        if kind == "string":
            self.pos += 1
            return _unquote(text)
        if kind == "number":
            self.pos += 1
            return _parse_number(text)
        if kind == "name":
            if text in _KEYWORD_VALUES:
                self.pos += 1
                return _KEYWORD_VALUES[text]
            if text in self.namespaces:
                return self._lookup(self._path())
            raise UnsupportedScript(f"Unsupported identifier {text!r}")
        if text in ("{", "[", "("):
            return self._nested(text)
        raise UnsupportedScript(f"Unsupported token {text!r}")

    def _nested(self, opener: str):
        if self.depth >= MAX_NESTING:
            raise UnsupportedScript(f"Literal nested deeper than {MAX_NESTING} levels")
        self.depth += 1
        try:
            if opener == "{":
                return self._object()
            if opener == "[":
                return self._array()
            self._expect("(")
            value = self._expression()
            self._expect(")")
            return value
        finally:
            self.depth -= 1

    def _object(self) -> dict:
        self._expect("{")
        result = {}
        while not self._at("}"):
            kind, text, _ = self._next()
            if kind == "name":
                key = text
            elif kind == "string":
                key = _unquote(text)
            elif kind == "number":
                key = str(_parse_number(text))
            else:
                raise UnsupportedScript(f"Unsupported object key {text!r}")
            self._expect(":")
            result[key] = _plain(self._expression())
            if self._at(","):
                self.pos += 1
            elif not self._at("}"):
                raise UnsupportedScript("Expected ',' or '}' in object literal")
        self._expect("}")
        return result

    def _array(self) -> list:
        self._expect("[")
        result = []
        while not self._at("]"):
            result.append(_plain(self._expression()))
            if self._at(","):
                self.pos += 1
            elif not self._at("]"):
                raise UnsupportedScript("Expected ',' or ']' in array literal")
        self._expect("]")
        return result


def read_script(source: str, namespaces: dict) -> None:
    """Apply the assignments in ``source`` to ``namespaces`` in place.

    Assignments made before an unsupported construct are kept.
    """
    try:
        LiteralReader(source, namespaces).run()
    except UnsupportedScript as exc:
        logger.debug(f"Stopped reading context script: {exc}")


def context_scripts(tree: HTMLParser) -> list[str]:
    """Inline scripts whose text starts with the context sentinel."""
    scripts = []
    for node in tree.css("script"):
        if node.attributes.get("src"):
            continue
        text = (node.text(deep=True) or "").strip()
        if text.startswith(CONTEXT_SCRIPT_SENTINEL):
            scripts.append(text)
    return scripts


def extract_context(html: str) -> dict:
    """
    Build the namespace tree populated by a page's context scripts.

    Returns ``{"window": {...}, "netflix": {...}}``. When no script matches
    both namespaces are empty; deciding whether that is fatal is left to the
    resolver.
    """
    namespaces = {name: {} for name in NAMESPACES}
    scripts = context_scripts(HTMLParser(html))
    for script in scripts:
        read_script(script, namespaces)
    logger.debug(f"Read {len(scripts)} context script(s)")
    return namespaces


# Login page helpers

_EMAIL_FIELD_SELECTORS = (".login-input-email", "input[name='userLoginId']")
_LOGIN_MESSAGE_SELECTOR = ".ui-message-contents"
_SKIPPED_INPUT_TYPES = {"submit", "button", "file", "reset", "image"}


def _enclosing_form(node):
    while node is not None and node.tag != "form":
        node = node.parent
    return node


def _serialize_form(form) -> dict[str, str]:
    fields: dict[str, str] = {}
    for control in form.css("input, select, textarea"):
        attrs = control.attributes
        name = attrs.get("name")
        if not name or "disabled" in attrs:
            continue
        if control.tag == "input":
            input_type = (attrs.get("type") or "text").lower()
            if input_type in _SKIPPED_INPUT_TYPES:
                continue
            if input_type in ("checkbox", "radio"):
                if "checked" not in attrs:
                    continue
                fields[name] = attrs.get("value") or "on"
            else:
                fields[name] = attrs.get("value") or ""
        elif control.tag == "select":
            options = control.css("option")
            chosen = next((o for o in options if "selected" in o.attributes), None)
            if chosen is None and options:
                chosen = options[0]
            if chosen is not None:
                value = chosen.attributes.get("value")
                fields[name] = value if value is not None else chosen.text(strip=True)
        else:
            fields[name] = control.text(deep=True) or ""
    return fields


def serialize_login_form(html: str) -> dict[str, str]:
    """
    Serialize the form enclosing the login email field.

    Returns an empty dict if the page has no such form.
    """
    tree = HTMLParser(html)
    for selector in _EMAIL_FIELD_SELECTORS:
        field = tree.css_first(selector)
        if field is None:
            continue
        form = _enclosing_form(field)
        if form is not None:
            return _serialize_form(form)
    logger.warning("Login form not found on login page")
    return {}


def extract_login_message(html: str) -> str | None:
    """Text of every message box on the login page, joined; None if there is none."""
    texts = [node.text(strip=True) for node in HTMLParser(html).css(_LOGIN_MESSAGE_SELECTOR)]
    return " ".join(text for text in texts if text) or None
