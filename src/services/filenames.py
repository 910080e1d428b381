"""Client filename handling."""

# Path and drive separators; removing them keeps every name inside its session folder.
_SEPARATORS = str.maketrans("", "", "/\\:")


def sanitize_filename(name: str) -> str:
    """Strip `/`, `\\` and `:` from a client-supplied filename.

    Nothing else is touched, so `..` sequences survive as plain characters:
    `"../../../etc/passwd"` becomes `"......etcpasswd"`. The result may be empty.
    """
    return name.translate(_SEPARATORS)
