"""Data validation helpers.

ID conventions:
- student_id: "stu" + 3 digits (stu001)
- class_id / subject_id / topic_id: "cls", "sub", "top" prefixes

Functions:
- validate_email(email) -> bool: Optional email format check
- resolve_reference(ref, candidates) -> str: Resolve an ID or name prefix
"""

import re

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$")


class AmbiguousReferenceError(Exception):
    """Raised when a name prefix matches multiple entities."""

    def __init__(self, ref: str, candidates: list[str]):
        self.ref = ref
        self.candidates = candidates
        super().__init__(
            f"'{ref}' is ambiguous. Candidates:\n"
            + "\n".join(f"  - {c}" for c in candidates)
        )


class ReferenceNotFoundError(Exception):
    """Raised when no entity matches a reference."""

    def __init__(self, ref: str):
        self.ref = ref
        super().__init__(f"Nothing matches '{ref}'")


def validate_email(email: str) -> bool:
    """Validate email format. Empty string is valid (optional field).

    Args:
        email: Email address to validate

    Returns:
        True if valid email or empty string, False otherwise
    """
    if not email:
        return True
    return bool(EMAIL_PATTERN.match(email))


def resolve_reference(ref: str, candidates: dict[str, str]) -> str:
    """Resolve an ID, a name, or a unique name prefix to an ID.

    Args:
        ref: Full ID (e.g., "stu003"), full name, or name prefix ("Ana")
        candidates: Mapping of ID -> display name

    Returns:
        The matching ID

    Raises:
        ReferenceNotFoundError: If nothing matches
        AmbiguousReferenceError: If the prefix matches several names
    """
    # Exact ID first
    if ref in candidates:
        return ref

    needle = ref.strip().lower()

    # Exact name
    exact = [cid for cid, name in candidates.items() if name.lower() == needle]
    if len(exact) == 1:
        return exact[0]

    # Name prefix
    matches = [cid for cid, name in candidates.items() if name.lower().startswith(needle)]

    if len(matches) == 0:
        raise ReferenceNotFoundError(ref)
    elif len(matches) == 1:
        return matches[0]
    else:
        raise AmbiguousReferenceError(
            ref, [f"{cid} ({candidates[cid]})" for cid in matches]
        )
