"""
Helper functions for formatting data into human-readable strings.
"""

from typing import Any


def format_size(bytes_size: int) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 MB')."""
    if bytes_size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    size = float(bytes_size)
    while size >= 1024 and i < len(units) - 1:
        size /= 1024
        i += 1
    return f"{size:.1f} {units[i]}"


def format_duration(seconds: float) -> str:
    """
    Formats a duration in seconds into a human-readable string (e.g., '2m 12s').
    """
    s = int(seconds)
    hours, remainder = divmod(s, 3600)
    minutes, secs = divmod(remainder, 60)
    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def format_price(result: dict[str, Any]) -> str:
    """Formats the price of a catalog result, e.g. 'Free' or '2.99 USD'."""
    price = result.get("price")
    if not price:
        return "Free"
    return f"{price} {result.get('currency', '')}".strip()


def mask_email(email: str) -> str:
    """Hides most of the local part of an email address for display."""
    local, sep, domain = email.partition("@")
    if not sep or len(local) <= 2:
        return email
    return f"{local[:2]}{'*' * (len(local) - 2)}@{domain}"
