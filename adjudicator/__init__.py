"""
Adjudicator - AI Judge Case Service
===================================

A small service for running a two-sided dispute through an AI judge:
1. Both sides upload documents (PDF, Word, plain text)
2. The reasoning engine renders a verdict
3. Each side may submit a bounded number of follow-up arguments

No auth, single process, one writer per case.
"""

__version__ = "1.0.0"
