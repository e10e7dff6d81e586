"""
Core utilities shared across the accounts service.

This package hosts configuration, password/code hashing, the SMTP mailer,
logging and rate limit helpers. Services depend on these primitives instead
of reading os.environ or talking to SMTP directly.
"""
