"""
Ingestion subsystem.

Components:
- extraction.py: context block + completer call + response decoding
- normalizer.py: candidate -> validated NewItem (dates into UTC/calendar dates)
- category_resolver.py: free-text hint -> known category id
- orchestrator.py: one inbound message end-to-end (idempotency, audit, reply)
"""
