"""Input validation for values that end up on a browser command line."""

from do_in_time.errors import InvalidTaskError

DANGEROUS_SCHEMES = ("javascript:", "data:", "vbscript:", "file:", "about:")
MAX_PROFILE_LENGTH = 100


def validate_url(url: str) -> None:
    """Accept only plain http(s) URLs.

    Raises:
        InvalidTaskError: empty, non-http(s) or obviously malformed URL
    """
    url_trimmed = url.strip()
    if not url_trimmed:
        raise InvalidTaskError("URL cannot be empty")

    url_lower = url_trimmed.lower()
    for scheme in DANGEROUS_SCHEMES:
        if url_lower.startswith(scheme):
            raise InvalidTaskError(f"Dangerous URL scheme not allowed: {scheme}")

    if not url_lower.startswith(("http://", "https://")):
        raise InvalidTaskError("URL must start with http:// or https://")

    if len(url_trimmed) < 10 or "." not in url_trimmed:
        raise InvalidTaskError("Invalid URL format")


def validate_browser_profile(profile: str) -> None:
    """Accept profile names made of letters, digits, '-', '_' and spaces.

    An empty profile means "use the default profile" and is allowed.

    Raises:
        InvalidTaskError: too long, path-like or containing other characters
    """
    profile_trimmed = profile.strip()
    if not profile_trimmed:
        return

    if len(profile_trimmed) > MAX_PROFILE_LENGTH:
        raise InvalidTaskError(
            f"Browser profile name too long (max {MAX_PROFILE_LENGTH} characters)"
        )

    if ".." in profile_trimmed or "/" in profile_trimmed or "\\" in profile_trimmed:
        raise InvalidTaskError(
            "Browser profile name cannot contain path separators or '..'"
        )

    for c in profile_trimmed:
        if not c.isalnum() and c not in "-_ ":
            raise InvalidTaskError(
                f"Browser profile name contains invalid character: '{c}'"
            )


def escape_applescript_string(value: str) -> str:
    """Escape backslashes and double quotes for an AppleScript string literal."""
    return value.replace("\\", "\\\\").replace('"', '\\"')
