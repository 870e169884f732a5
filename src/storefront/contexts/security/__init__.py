"""
Security context: OTP attribute verification, scheduled storefront lock, single-session guard.
"""
