"""
Shared test constants.

This module provides constants that are used across multiple test files so
that phone formats and secrets stay consistent.
"""

# Raw and normalized forms of the same player key.
RAW_PHONE = "+1 (555) 123-4567"
PHONE = "+15551234567"

OTHER_PHONE = "+15550000001"

TEST_SECRET = "party-secret-42"
