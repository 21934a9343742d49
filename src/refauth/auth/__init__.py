"""Authentication primitives.

Learn: Two credential schemes resolve to an AuthToken:
1. User-Ref-Token → opaque token id stored in auth_token, names a user
2. Share-Code → durable code on the account row, names an account

Both sit behind the Authenticator interface and are dispatched by scheme
name through TokenRegistry.
"""
