"""
Utility functions for mail header handling.
"""

from __future__ import annotations

import re


def extract_email_address(email_address: str) -> str:
    """
    Extract and normalize email address from various formats.

    Examples:
        >>> extract_email_address("John Doe <john@company.com>")
        'john@company.com'

        >>> extract_email_address("invalid")
        'invalid'
    """
    if not email_address:
        return ""

    email_lower = email_address.lower().strip()
    angle_match = re.search(r"<([^>]+)>", email_lower)
    if angle_match:
        email_lower = angle_match.group(1).strip()
    return email_lower


def sender_display_name(from_header: str) -> str:
    """
    Display part of a From header: everything before the first ``<``.

    Falls back to the bare address when the header has no display name.

    Examples:
        >>> sender_display_name('Jane Roe <jane@example.com>')
        'Jane Roe'

        >>> sender_display_name('"Billing Team" <billing@example.com>')
        'Billing Team'

        >>> sender_display_name('<noreply@example.com>')
        'noreply@example.com'
    """
    if not from_header:
        return ""
    name = from_header.split("<", 1)[0].strip().strip('"').strip()
    return name or extract_email_address(from_header)
