"""
Protocol tree boundary for SleepEdit backend.

Design intent:
- Model the protocol as an immutable tree shared between edits.
- Signal no-effect edits explicitly instead of raising.
- Keep the XML wire order byte-compatible with existing protocol files.
"""
