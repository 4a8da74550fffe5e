"""Short URL construction."""

from urllib.parse import quote


def build_short_url(short_code: str, base_url: str, path_prefix: str = "") -> str:
    """Join base URL, optional path prefix and the percent-encoded short code.

    >>> build_short_url("docs v2", "https://sho.rt/", "/s/")
    'https://sho.rt/s/docs%20v2'
    """
    segments = [base_url.rstrip("/")]
    prefix = path_prefix.strip("/")
    if prefix:
        segments.append(prefix)
    segments.append(quote(short_code, safe=""))
    return "/".join(segments)
