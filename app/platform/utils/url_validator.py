from urllib.parse import urlparse

from app.platform.exceptions import ValidationError


def normalize_url(url: str) -> str:
    url = url.strip()
    if not urlparse(url).scheme:
        return f"https://{url}"
    return url


def validate_url(url: str) -> str:
    """Return the normalized target URL or raise ValidationError."""
    if not url or not url.strip():
        raise ValidationError("Missing URL")

    try:
        normalized_url = normalize_url(url)
        parsed = urlparse(normalized_url)
    except ValueError as e:
        raise ValidationError(f"URL parsing error: {e}") from e

    if parsed.scheme not in ("http", "https"):
        raise ValidationError(f"Invalid URL scheme: {parsed.scheme} (must be http or https)")
    if not parsed.netloc:
        raise ValidationError("Invalid URL format: missing domain")

    return normalized_url
