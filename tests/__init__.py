"""Test package for SmartStudy.

Structure:
    - unit/: Stores, parsers and gateway in isolation
    - integration/: HTTP endpoints end to end against a scripted gateway

The LLM backend is always replaced by the FakeGateway in conftest.py.
Leverages pytest with pytest-check for soft assertions.
"""
