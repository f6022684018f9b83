import re

def tidy_variable_name(name: str) -> str:
    """
    Cleans up a string to be a suitable column name by:
    - Replacing dashes, spaces, and other common separators with underscores.
    - Converting to lowercase.
    - Stripping leading/trailing whitespace and underscores.
    - Ensuring no multiple consecutive underscores.

    Args:
        name (str): The input string, e.g. a raster band description.

    Returns:
        str: The cleaned up string, suitable for use as a feature table column.
    """
    name = str(name)

    name = re.sub(r'[\s\-/\\.:;,()\[\]{}]', '_', name)
    name = name.lower()
    name = re.sub(r'[^a-z0-9_]', '', name)
    name = re.sub(r'_+', '_', name)
    name = name.strip('_')

    return name
