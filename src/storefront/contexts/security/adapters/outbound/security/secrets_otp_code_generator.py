from __future__ import annotations

import secrets

from storefront.contexts.security.application.ports import OtpCodeGenerator


class SecretsOtpCodeGenerator(OtpCodeGenerator):
    """
    SecretsOtpCodeGenerator — CSPRNG code source drawing each digit independently.

    Related:
      - src/storefront/contexts/security/application/ports/otp_code_generator.py
      - src/storefront/contexts/security/application/use_cases/verification_request_manager.py
    """

    def generate(self, *, digits: int) -> str:
        if digits <= 0:
            raise ValueError("SecretsOtpCodeGenerator.digits must be > 0")
        return "".join(str(secrets.randbelow(10)) for _ in range(digits))
