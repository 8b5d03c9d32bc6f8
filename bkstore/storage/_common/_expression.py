import re

_SPECIAL = set("^.[]{}()|*+?\\$")
_QUANTIFIER = set("*?{")


def expression_prefix(expression: str | None) -> str | None:
    """Literal text every match of an anchored expression starts with.

    Returns None when the expression is not anchored with "^" or has no
    literal characters after the anchor.
    """
    if expression is None or not expression.startswith("^"):
        return None
    end = 1
    while end < len(expression) and expression[end] not in _SPECIAL:
        end += 1
    # A quantified final literal may match zero times
    if end < len(expression) and expression[end] in _QUANTIFIER:
        end -= 1
    if end <= 1:
        return None
    return expression[1:end]


def match_expression(expression: str | None, name: str | None) -> bool:
    if expression is None:
        return True
    return re.search(expression, name or "") is not None
