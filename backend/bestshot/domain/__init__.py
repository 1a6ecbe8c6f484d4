# Domain package init
"""
Best Shot Backend — Domain Rules
==================================

Pure Python rules with no I/O:
    - ballot.py: selection state machine (toggle, ready-at-ten, submit lifecycle)
"""
