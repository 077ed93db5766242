import re


_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def snake_case(name: str) -> str:
    """ImageCategory -> image_category, HTTPLog -> http_log"""
    return _BOUNDARY.sub("_", name).replace("-", "_").lower()
