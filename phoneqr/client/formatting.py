import re

_NON_DIGITS = re.compile(r"\D")


def digits_only(text: str) -> str:
    return _NON_DIGITS.sub("", text or "")


def format_phone_display(text: str) -> str:
    """
    Regroups typed phone text as "+DDD DDD DDD ..." for display.
    Every typed digit is shown so an overlong number stays visible;
    the server only ever receives digits_only(text).
    """
    digits = digits_only(text)
    if not digits:
        return ""
    groups = [digits[i:i + 3] for i in range(0, len(digits), 3)]
    return "+" + " ".join(groups)
