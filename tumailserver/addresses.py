# tumailserver
# MIT licensed

import re

DEFAULT_ADDRESS = 'invalid@addr'

ENVELOPE_PATTERN = re.compile(r'(MAIL|RCPT) (FROM|TO):.*?<([^>]*)>', re.IGNORECASE)
UNSAFE_RUN_PATTERN = re.compile(r'[^a-zA-Z0-9@]+')


def sanitize_address(line: str) -> str:
    """Extract the envelope address of a MAIL/RCPT line.

    Every run of characters outside [A-Za-z0-9@] collapses into a single dot,
    which keeps the result safe to embed in a file name. Lines without a
    usable bracketed address yield DEFAULT_ADDRESS instead of an error.
    """
    match = ENVELOPE_PATTERN.search(line)
    if not match or not match.group(3):
        return DEFAULT_ADDRESS
    return UNSAFE_RUN_PATTERN.sub('.', match.group(3))
