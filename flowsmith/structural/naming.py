# flowsmith/structural/naming.py
import re

SNAKE_CASE_RE = re.compile(r"^[a-z][a-z0-9_]*$")

_ACRONYM_RE = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_RE = re.compile(r"(?<=[a-z0-9])([A-Z])")
_SEPARATORS_RE = re.compile(r"[\s\-./]+")
_UNDERSCORES_RE = re.compile(r"_+")


def to_snake_case(name: str) -> str:
    """
    Convert camelCase, PascalCase, kebab-case and spaced names to snake_case.

    ``to_snake_case(to_snake_case(x)) == to_snake_case(x)`` for any string.
    """
    s = _ACRONYM_RE.sub(r"\1_\2", name)
    s = _CAMEL_RE.sub(r"_\1", s)
    s = _SEPARATORS_RE.sub("_", s)
    s = _UNDERSCORES_RE.sub("_", s)
    return s.lstrip("_").lower()


def is_snake_case(name: str) -> bool:
    """
    True if ``name`` is snake_case, also accepting spaces in place of underscores
    ("send email" reads fine on the canvas). Case is never relaxed.
    """
    if SNAKE_CASE_RE.match(name):
        return True
    return bool(SNAKE_CASE_RE.match(re.sub(r"\s+", "_", name.strip())))
