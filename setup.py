#!/usr/bin/env python3
"""
MC-Admin Setup Script
=====================
Allows installation of the mcadmin package.

Usage:
    pip install -e .           # Development install
    pip install -e .[test]     # With test dependencies
    pip install .              # Regular install
"""

from setuptools import setup, find_packages

setup(
    name="mcadmin",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pymemcache>=4.0",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
    entry_points={
        "console_scripts": [
            "mcadmin=mcadmin.server:main",
        ],
    },
)
