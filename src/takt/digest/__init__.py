"""
Daily digest.

Components:
- summary.py: per-subscriber summary in local time + text rendering
- scheduler.py: concurrent fan-out and the polling loop
"""
