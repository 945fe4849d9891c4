"""
connectors — Google sign-in and the credential vault.

Provides:
  • OAuth2 auth-URL generation and callback handling (code → tokens)
  • AES-256-GCM sealing of refresh tokens at rest
  • Per-user credential storage behind ``CredentialVault``
  • Authorized Classroom clients with refresh-token rotation hand-off
"""
