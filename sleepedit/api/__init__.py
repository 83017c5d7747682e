"""
HTTP boundary for the SleepEdit protocol editor.

Design intent:
- Translate requests into editor service calls and back.
- Keep session plumbing and status-code mapping out of the core.
"""
