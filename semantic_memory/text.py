"""Text helpers for LLM output and outgoing replies."""

MAX_MESSAGE_LENGTH = 2000


def strip_code_block(content: str) -> str:
    """Remove a surrounding markdown code fence (```json ... ```) if present."""
    content = content.strip()
    if content.startswith("```"):
        content = content.split("\n", 1)[1] if "\n" in content else content[3:]
        content = content.rsplit("```", 1)[0] if "```" in content else content
        content = content.strip()
    return content


def split_message(text: str, max_length: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """
    Split a reply into chunks of at most max_length characters.

    Prefers breaking after a newline, then after a space; hard-splits words
    longer than a whole chunk. Joining the chunks gives back the original text.
    """
    if max_length <= 0:
        raise ValueError("max_length must be positive")
    if not text:
        return []

    chunks = []
    remaining = text
    while len(remaining) > max_length:
        window = remaining[:max_length]
        cut = window.rfind("\n")
        if cut <= 0:
            cut = window.rfind(" ")
        cut = cut + 1 if cut > 0 else max_length
        chunks.append(remaining[:cut])
        remaining = remaining[cut:]

    if remaining:
        chunks.append(remaining)
    return chunks
