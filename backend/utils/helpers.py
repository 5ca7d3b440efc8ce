# utils/helpers.py
def safe_strip(value):
    """Safely strip a string value, handling None"""
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped if stripped else None
    return value


def split_csv(value):
    """Split a comma-separated setting into its non-empty, stripped parts"""
    if not value:
        return []
    return [part for part in (safe_strip(p) for p in value.split(',')) if part]
