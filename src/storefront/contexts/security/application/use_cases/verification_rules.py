from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Mapping

from email_validator import EmailNotValidError, validate_email

from storefront.contexts.security.application.ports import NotificationChannel
from storefront.contexts.security.domain.entities import Account
from storefront.contexts.security.domain.value_objects import VerificationType

_PHONE_SEPARATORS = re.compile(r"[\s\-().]")
_NATIONAL_PHONE = re.compile(r"^9\d{9}$")
_PHONE_COUNTRY_CODE = "63"


@dataclass(frozen=True, slots=True)
class VerificationRule:
    """
    VerificationRule — per-type behavior table row for OTP attribute verification.

    `normalize` returns the canonical stored form, or `None` when the raw value is malformed.
    `uniqueness_candidates` expands a canonical value into every stored variant that counts as
    the same value on another account.

    Docs:
      - docs/architecture/security/time-gated-security-v1.md
    Related:
      - src/storefront/contexts/security/application/use_cases/verification_request_manager.py
      - src/storefront/contexts/security/application/ports/account_repository.py
    """

    verification_type: VerificationType
    channel: NotificationChannel
    normalize: Callable[[str], str | None]
    current_value: Callable[[Account], str | None]
    uniqueness_candidates: Callable[[str], tuple[str, ...]]

    def is_different_from_current(self, *, value: str, account: Account) -> bool:
        """
        Return whether canonical `value` differs from the account's current attribute.

        Args:
            value: Canonical candidate value.
            account: Account snapshot.
        Returns:
            bool: True when the value would change the account.
        Assumptions:
            Current values may be stored in legacy forms and are normalized before comparison.
        Raises:
            None.
        Side Effects:
            None.
        """
        current = self.current_value(account)
        if current is None:
            return True
        normalized_current = self.normalize(current)
        if normalized_current is None:
            return current.strip() != value
        return normalized_current != value


def normalize_email(raw: str) -> str | None:
    """
    Normalize email address to lowercase canonical text.

    Args:
        raw: User-provided address.
    Returns:
        str | None: Canonical address or `None` if it does not parse.
    Assumptions:
        Deliverability (DNS) is not checked; the OTP round-trip proves it.
    Raises:
        None.
    Side Effects:
        None.
    """
    candidate = raw.strip()
    if not candidate:
        return None
    try:
        validated = validate_email(candidate, check_deliverability=False)
    except EmailNotValidError:
        return None
    return validated.normalized.lower()


def national_phone(raw: str) -> str | None:
    """
    Extract national mobile number `9XXXXXXXXX` from a local or international form.

    Args:
        raw: Phone text in `9…`, `09…`, `639…` or `+639…` form, separators allowed.
    Returns:
        str | None: Ten-digit national number or `None` when malformed.
    Assumptions:
        Only Philippine mobile numbers are accepted.
    Raises:
        None.
    Side Effects:
        None.
    """
    compact = _PHONE_SEPARATORS.sub("", raw.strip())
    if compact.startswith("+" + _PHONE_COUNTRY_CODE):
        compact = compact[len(_PHONE_COUNTRY_CODE) + 1 :]
    elif compact.startswith(_PHONE_COUNTRY_CODE) and len(compact) == 12:
        compact = compact[len(_PHONE_COUNTRY_CODE) :]
    elif compact.startswith("0"):
        compact = compact[1:]
    if not _NATIONAL_PHONE.match(compact):
        return None
    return compact


def normalize_phone(raw: str) -> str | None:
    national = national_phone(raw)
    if national is None:
        return None
    return f"+{_PHONE_COUNTRY_CODE}{national}"


def phone_uniqueness_candidates(value: str) -> tuple[str, ...]:
    national = national_phone(value)
    if national is None:
        return (value,)
    # Legacy rows may hold any of the three stored forms.
    return (national, f"0{national}", f"+{_PHONE_COUNTRY_CODE}{national}")


EMAIL_RULE = VerificationRule(
    verification_type=VerificationType.EMAIL,
    channel=NotificationChannel.EMAIL,
    normalize=normalize_email,
    current_value=lambda account: account.email,
    uniqueness_candidates=lambda value: (value,),
)

PHONE_RULE = VerificationRule(
    verification_type=VerificationType.PHONE,
    channel=NotificationChannel.SMS,
    normalize=normalize_phone,
    current_value=lambda account: account.phone,
    uniqueness_candidates=phone_uniqueness_candidates,
)

DEFAULT_VERIFICATION_RULES: Mapping[VerificationType, VerificationRule] = {
    VerificationType.EMAIL: EMAIL_RULE,
    VerificationType.PHONE: PHONE_RULE,
}
