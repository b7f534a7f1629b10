"""
Priority Context
================

Decides a priority tier for incoming tickets from rules and an optional LLM
classifier, gates auto-application on confidence, and tracks reviewer
decisions.
"""
