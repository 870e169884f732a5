from __future__ import annotations

from typing import Protocol


class OtpCodeGenerator(Protocol):
    """
    OtpCodeGenerator — source of uniformly random numeric one-time codes.

    Related:
      - src/storefront/contexts/security/adapters/outbound/security/secrets_otp_code_generator.py
      - src/storefront/contexts/security/application/use_cases/verification_request_manager.py
    """

    def generate(self, *, digits: int) -> str:
        """
        Generate numeric code text of exactly `digits` characters.

        Args:
            digits: Code length.
        Returns:
            str: Zero-padded code, each digit drawn independently.
        Assumptions:
            Leading zeros are significant and preserved.
        Raises:
            ValueError: If `digits` is not positive.
        Side Effects:
            Consumes randomness.
        """
        ...
