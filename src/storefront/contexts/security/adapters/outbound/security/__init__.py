from .secrets_otp_code_generator import SecretsOtpCodeGenerator
from .session_cookie_current_actor import SessionCookieCurrentActor

__all__ = [
    "SecretsOtpCodeGenerator",
    "SessionCookieCurrentActor",
]
