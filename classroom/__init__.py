"""
classroom — read-only access to Google Classroom on behalf of a stored user.

Provides:
  • Cursor pagination with per-endpoint response adapters
  • Normalization of raw Classroom resources into stable schemas
  • Translation of remote failures into the closed error taxonomy
  • Course role inference via membership probes
  • Submission fan-out across a course's coursework
"""
