"""
Setup script for tools that still call setup.py directly.
Project metadata and dependencies live in pyproject.toml (PEP 621).
"""

from setuptools import setup

# Configuration comes from pyproject.toml
setup()
