import re
from datetime import datetime, timezone
from typing import Any, List, Optional

TRUNCATION_MARKER = "... (text truncated due to length)"

_NULL_STRINGS = {"", "null", "none", "n/a", "unknown"}

# One number with its own thousands/decimal separators, e.g. '1,250.00'
_PRICE_NUMBER = re.compile(r'\d+(?:[.,]\d+)*')

def normalize_price(value: Any) -> Optional[float]:
    """
    Normalize a model-supplied price to a non-negative number.
    Examples: 12.99 -> 12.99, '$12.99' -> 12.99, '12,50 €' -> 12.5, 'market price' -> None
    Only the first number counts: '$8 / $12' -> 8.0, '5-7' -> 5.0
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        price = float(value)
        return price if price >= 0 else None

    text = str(value).strip()
    if not text or text.startswith("-"):
        return None

    match = _PRICE_NUMBER.search(text)
    if not match:
        return None
    number = match.group()

    if ',' in number and '.' in number:
        # The later separator is the decimal one: '1,250.00' or '1.234,56'
        if number.rfind(',') > number.rfind('.'):
            number = number.replace('.', '').replace(',', '.')
        else:
            number = number.replace(',', '')
    elif ',' in number:
        # Decimal comma: '12,50' -> '12.50'; thousands comma: '1,250' -> '1250'
        if number.count(',') == 1 and re.search(r',\d{1,2}$', number):
            number = number.replace(',', '.')
        else:
            number = number.replace(',', '')
    elif number.count('.') > 1:
        number = number.replace('.', '')

    return float(number)

def clean_optional_text(value: Any) -> Optional[str]:
    """Strip a scalar text field; blank and 'null'-like strings become None"""
    if value is None:
        return None
    text = str(value).strip()
    if text.lower() in _NULL_STRINGS:
        return None
    return text

def normalize_string_list(value: Any) -> Optional[List[str]]:
    """
    Coerce a model-supplied list field to a list of stripped strings.
    A comma or semicolon separated string is split; blank entries are dropped.
    """
    if value is None:
        return None

    if isinstance(value, str):
        if value.strip().lower() in _NULL_STRINGS:
            return None
        value = re.split(r'[,;]', value)

    if not isinstance(value, (list, tuple)):
        return None

    result = []
    for entry in value:
        text = clean_optional_text(entry)
        if text:
            result.append(text)
    return result

def truncate_text(text: str, limit: int, marker: str = TRUNCATION_MARKER) -> str:
    """Cut text to `limit` characters, appending the marker when anything was dropped"""
    if len(text) <= limit:
        return text
    return text[:limit] + marker

def strip_code_fences(content: str) -> str:
    """Remove markdown code fences (```json ... ```) around a model response"""
    content = content.strip()
    content = re.sub(r'^```[a-zA-Z]*\s*', '', content)
    content = re.sub(r'\s*```$', '', content)
    return content.strip()

def scan_name_for_date(moment: Optional[datetime] = None) -> str:
    """Display name for a scan, e.g. 'October 18, 2026'"""
    moment = moment or datetime.now(timezone.utc)
    return f"{moment.strftime('%B')} {moment.day}, {moment.year}"

def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")
