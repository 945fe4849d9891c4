"""
auth — API bearer tokens and OAuth state.

Provides:
  • Signed bearer tokens carrying the internal ``user_id``
  • Signed, expiring OAuth ``state`` values for the Google callback
"""
