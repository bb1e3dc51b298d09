#!/usr/bin/env python3
"""Setup script for the Flutter Deprecations MCP Server."""

from setuptools import setup, find_packages

# Read long description from README
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="flutter-deprecations-mcp",
    version="0.2.0",
    author="Flutter MCP Contributors",
    description="MCP server that detects deprecated Flutter APIs in code snippets",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/flutter-mcp/flutter-deprecations",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Quality Assurance",
    ],
    python_requires=">=3.10",
    install_requires=[
        "httpx>=0.28.1",
        "humanize>=4.0.0",
        "mcp>=1.2.0,<2",
        "platformdirs>=4.0.0",
        "rich>=13.0.0",
        "structlog>=25.4.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "flutter-deprecations=flutter_deprecations.cli:main",
        ],
    },
)
