"""
SleepEdit backend package.

Design intent:
- Host the protocol editor core (tree engine, XML codec, undo/redo sessions).
- Keep the HTTP surface thin and the tree engine free of I/O.
"""
