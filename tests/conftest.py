"""
Root-level conftest for all tests.

Keeps log output quiet unless a test run asks for more; must run before any
connector module creates its loggers.
"""
import os

os.environ.setdefault("LOGLEVEL", "WARNING")
