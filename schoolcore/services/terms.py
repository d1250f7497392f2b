import logging
import re
from enum import Enum
from typing import Any, Optional

from schoolcore.exceptions import ValidationFailure

logger = logging.getLogger(__name__)

SESSION_LABEL_PATTERN = re.compile(r"^(\d{4})/(\d{4})$")


class Term(str, Enum):
    FIRST = "First"
    SECOND = "Second"
    THIRD = "Third"


# The remote API stores terms as ordinals
TERM_ORDINALS = {
    Term.FIRST: 1,
    Term.SECOND: 2,
    Term.THIRD: 3,
}

ORDINAL_TERMS = {number: term for term, number in TERM_ORDINALS.items()}


def term_to_number(term: Term) -> int:
    return TERM_ORDINALS[Term(term)]


def number_to_term(value: Any) -> Term:
    """
    Decode the remote API's term ordinal.

    Anything outside 1, 2 and 3 decodes to the first term instead of raising.
    This hides data-contract drift between the API and the core, so every
    fallback is logged as a warning with the offending value.
    """
    try:
        number = int(value)
    except (TypeError, ValueError):
        number = None

    if number in ORDINAL_TERMS and str(value).strip() == str(number):
        return ORDINAL_TERMS[number]

    logger.warning(
        f"Unexpected term ordinal {value!r} received from the school API; "
        f"falling back to {Term.FIRST.value} term. Check the API term contract."
    )
    return Term.FIRST


def parse_term(value: Any) -> Term:
    """Accept either the symbolic term name or the API ordinal."""
    if isinstance(value, Term):
        return value
    if isinstance(value, str):
        for term in Term:
            if value.strip().lower() == term.value.lower():
                return term
    return number_to_term(value)


def next_term(term: Term) -> Optional[Term]:
    """
    Return the term that follows `term` inside the same session.

    The third term has no successor; moving on from it is a session migration.
    """
    number = term_to_number(term)
    return ORDINAL_TERMS.get(number + 1)


def validate_session_label(label: str) -> str:
    if not label or not SESSION_LABEL_PATTERN.match(label.strip()):
        raise ValidationFailure(f"Session must be in the format YYYY/YYYY, got {label!r}")
    return label.strip()


def next_session_label(label: str) -> str:
    start, end = SESSION_LABEL_PATTERN.match(validate_session_label(label)).groups()
    return f"{int(start) + 1}/{int(end) + 1}"
