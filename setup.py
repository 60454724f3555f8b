#!/usr/bin/env python3
"""
Setup script for Data Insights
"""
from pathlib import Path

from setuptools import find_packages, setup


def read_requirements():
    """Read runtime dependencies"""
    requirements = Path(__file__).parent / "requirements.txt"
    return [
        line.strip()
        for line in requirements.read_text().splitlines()
        if line.strip() and not line.startswith("#")
    ]


setup(
    name="data-insights",
    version="1.0.0",
    description="Column statistics, correlation matrices and Q&A for tabular datasets",
    python_requires=">=3.9",
    packages=find_packages(include=["data_insights", "data_insights.*"]),
    install_requires=read_requirements(),
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "httpx>=0.24",
        ]
    },
)
