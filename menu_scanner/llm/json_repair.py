import json
import re
from typing import Any, List, Tuple

EMPTY_MENU_JSON = '{"menu_items": []}'

_CLOSERS = {"{": "}", "[": "]"}

# Applied only outside double-quoted strings
_UNQUOTED_KEY = re.compile(r'([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)(\s*:)')
_TRAILING_COMMA = re.compile(r',(\s*[}\]])')

# A closing single quote is followed by a separator, a closer or the end
_SINGLE_QUOTE_END = re.compile(r"'(?=\s*(?:[,:}\]]|$))")
_SINGLE_QUOTE_OPENERS = ("", "{", "[", ",", ":")

_PARTIAL_SCALAR = re.compile(r'([\[:,]\s*)([A-Za-z0-9.+\-]+)$')
_DANGLING_MEMBER = re.compile(r',?\s*"(?:[^"\\]|\\.)*"\s*:\s*$')
_DANGLING_KEY = re.compile(r'([{,])\s*"(?:[^"\\]|\\.)*"\s*$')
_MENU_ITEMS_START = re.compile(r'"menu_items"\s*:\s*\[')

def _is_valid(text: str) -> bool:
    try:
        json.loads(text)
        return True
    except (ValueError, TypeError):
        return False

def _split_strings(text: str) -> Tuple[List[Tuple[bool, str]], bool]:
    """
    Split text into (is_string, chunk) segments on double-quoted JSON strings.
    Returns the segments and whether the text ends inside an unterminated string.
    """
    segments = []
    start = 0
    i = 0
    in_string = False
    while i < len(text):
        char = text[i]
        if in_string:
            if char == "\\":
                i += 2
                continue
            if char == '"':
                segments.append((True, text[start:i + 1]))
                start = i + 1
                in_string = False
        elif char == '"':
            if i > start:
                segments.append((False, text[start:i]))
            start = i
            in_string = True
        i += 1
    if start < len(text):
        segments.append((in_string, text[start:]))
    return segments, in_string

def _single_quote_end(text: str, start: int) -> int:
    position = start
    while True:
        index = text.find("'", position)
        if index == -1:
            return -1
        if text[index - 1] != "\\" and _SINGLE_QUOTE_END.match(text, index):
            return index
        position = index + 1

def _requote_single(text: str) -> str:
    """
    Re-emit single-quoted keys and values as JSON strings.
    Double-quoted strings are copied through untouched, so an apostrophe
    inside them is never taken for a quote; double quotes inside a
    single-quoted string end up escaped.
    """
    out = []
    last = ""
    in_string = False
    i = 0
    while i < len(text):
        char = text[i]
        if in_string:
            out.append(char)
            if char == "\\":
                out.append(text[i + 1:i + 2])
                i += 2
                continue
            if char == '"':
                in_string = False
        elif char == '"':
            out.append(char)
            in_string = True
            last = char
        elif char == "'" and last in _SINGLE_QUOTE_OPENERS:
            end = _single_quote_end(text, i + 1)
            inner = text[i + 1:] if end == -1 else text[i + 1:end]
            quoted = json.dumps(inner.replace("\\'", "'"), ensure_ascii=False)
            if end == -1:
                # Truncated: leave the string open for _balance to close
                out.append(quoted[:-1])
                break
            out.append(quoted)
            last = '"'
            i = end
        else:
            out.append(char)
            if not char.isspace():
                last = char
        i += 1
    return "".join(out)

def _fix_quotes_and_commas(text: str) -> str:
    segments, _ = _split_strings(_requote_single(text))
    parts = []
    for is_string, chunk in segments:
        if not is_string:
            chunk = _UNQUOTED_KEY.sub(r'\1"\2"\3', chunk)
            chunk = _TRAILING_COMMA.sub(r'\1', chunk)
        parts.append(chunk)
    return "".join(parts)

def _open_containers(segments: List[Tuple[bool, str]]) -> List[str]:
    stack = []
    for is_string, chunk in segments:
        if is_string:
            continue
        for char in chunk:
            if char in _CLOSERS:
                stack.append(char)
            elif char in "}]" and stack and _CLOSERS[stack[-1]] == char:
                stack.pop()
            # A mismatched closer is left alone; it cannot be fixed by appending
    return stack

def _balance(text: str) -> str:
    """
    Close a truncated document: terminate an open string, drop a cut-off
    literal, a dangling comma or a value-less key, then append the missing
    closers innermost first.
    Openers are never inserted.
    """
    segments, unterminated = _split_strings(text)
    stack = _open_containers(segments)

    if unterminated:
        trailing_backslashes = len(text) - len(text.rstrip("\\"))
        if trailing_backslashes % 2:
            text = text[:-1]
        text += '"'

    if not stack:
        return text

    text = text.rstrip()
    # Cut-off literal or number, e.g. `"description": nul` or `"price": 12.`
    match = _PARTIAL_SCALAR.search(text)
    if match and not _is_valid(match.group(2)):
        text = text[:match.start(2)].rstrip()
    if stack[-1] == "{":
        text = _DANGLING_KEY.sub(lambda m: "{" if m.group(1) == "{" else "", text)
    text = _DANGLING_MEMBER.sub("", text)
    text = re.sub(r',\s*$', '', text)
    return text + "".join(_CLOSERS[opener] for opener in reversed(stack))

def _extract_menu_items(text: str) -> str:
    """Find a `"menu_items": [...]` array that parses on its own, longest first"""
    match = _MENU_ITEMS_START.search(text)
    if not match:
        return ""
    start = match.end() - 1
    for end in range(len(text) - 1, start, -1):
        if text[end] != "]":
            continue
        candidate = text[start:end + 1]
        try:
            if isinstance(json.loads(candidate), list):
                return candidate
        except ValueError:
            continue
    return ""

def repair(text: str) -> str:
    """
    Best-effort recovery of model output that should be a single JSON object.

    1. Valid input is returned unchanged.
    2. Unquoted keys and single-quoted strings are double-quoted.
    3. Trailing commas before } and ] are removed.
    4. Missing closers are appended (openers are never inserted).
    5. If that parses, it is returned.
    6. Otherwise a standalone `"menu_items": [...]` array is wrapped in a new object.
    7. Otherwise `{"menu_items": []}`.

    Never raises.
    """
    try:
        if not isinstance(text, str):
            return EMPTY_MENU_JSON

        if _is_valid(text):
            return text

        print("REPAIRING JSON...")
        repaired = _fix_quotes_and_commas(text)
        repaired = _balance(repaired)
        # Appending closers can expose a trailing comma
        repaired = _fix_quotes_and_commas(repaired)

        if _is_valid(repaired):
            print("JSON REPAIR SUCCESSFUL")
            return repaired

        menu_items = _extract_menu_items(repaired) or _extract_menu_items(text)
        if menu_items:
            print("JSON REPAIR FAILED - salvaged menu_items array")
            return '{"menu_items": ' + menu_items + '}'

        print("JSON REPAIR FAILED - returning empty menu")
        return EMPTY_MENU_JSON
    except Exception as e:
        print(f"JSON REPAIR ERROR: {e}")
        return EMPTY_MENU_JSON

def loads_menu_json(text: str) -> Any:
    """Parse model output, repairing it first if needed"""
    return json.loads(repair(text))
