#!/usr/bin/env python3
"""
Setup script for panelslicer
============================
"""

from pathlib import Path
from setuptools import setup, find_packages

HERE = Path(__file__).parent
README = (HERE / "README.md").read_text(encoding='utf-8')


def read_requirements(filename):
    """Read requirements from a file, skipping blanks and comments."""
    req_file = HERE / filename
    if req_file.exists():
        lines = req_file.read_text().strip().split('\n')
        return [line.strip() for line in lines if line.strip() and not line.startswith('#')]
    return []


setup(
    name="panelslicer",
    version="1.0.0",
    description="Heuristic slicing of comic pages, sprite sheets and assets into normalized regions",
    long_description=README,
    long_description_content_type="text/markdown",
    license="MIT",
    classifiers=[
        "Development Status :: 4 - Beta",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Multimedia :: Graphics",
        "Topic :: Scientific/Engineering :: Image Recognition",
    ],
    keywords="comics sprites slicing panel detection segmentation",

    # Package layout
    package_dir={"": "src"},
    packages=find_packages(where="src"),

    # Requirements
    python_requires=">=3.9",
    install_requires=read_requirements("requirements.txt"),
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "pytest-cov",
        ],
    },

    # Entry points
    entry_points={
        "console_scripts": [
            "panelslicer=panelslicer.cli:main",
        ],
    },
)
