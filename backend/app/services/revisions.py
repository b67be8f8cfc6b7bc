"""Drawing revision lettering: A, B, ..., Z, AA, AB, ..."""

from typing import Optional


def get_next_revision(current: Optional[str]) -> str:
    """
    Return the revision label that follows ``current``.

    Single letters step through the alphabet and "Z" rolls over to "AA".
    For longer labels only the last letter is stepped; when it is "Z" the
    first letter is stepped and a single "A" is appended ("AZ" -> "BA").
    Carrying across three or more letters is not handled.
    """
    if not current:
        return "A"
    if current == "Z":
        return "AA"
    if len(current) == 1:
        return chr(ord(current) + 1)

    last = current[-1]
    if last == "Z":
        return chr(ord(current[0]) + 1) + "A"
    return current[:-1] + chr(ord(last) + 1)
