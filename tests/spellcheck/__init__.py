"""
Markdown Spellcheck Tests Package
=================================
Test suite for the markdown spellcheck scan.

Run all tests: python3 -m pytest tests/spellcheck/ -v
Run specific: python3 -m pytest tests/spellcheck/test_position.py -v
"""
