"""refauth — credential lifecycle engine.

Issues, validates and revokes opaque reference tokens, registers users
(including anonymous-to-named upgrades) and runs the email/phone
verification and password-reset code workflows.
"""

__version__ = "0.1.0"
