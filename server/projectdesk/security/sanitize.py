# HTML-escape free text before it is stored, so names and descriptions render
# inert wherever a client drops them into markup.

_ESCAPES: dict[int, str] = str.maketrans(
    {
        "<": "&lt;",
        ">": "&gt;",
        '"': "&quot;",
        "'": "&#x27;",
        "`": "&#x60;",
        "/": "&#x2F;",
    }
)


def sanitize_input(text: str) -> str:
    """Escape characters that could open a tag, attribute, or template literal."""
    if not text:
        return text
    return text.translate(_ESCAPES)
