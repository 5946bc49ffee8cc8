#!/usr/bin/env python3
"""
Setup script for comicpanels
============================
"""

from pathlib import Path
from setuptools import setup, find_packages

# Read the README
HERE = Path(__file__).parent
README = (HERE / "README.md").read_text(encoding='utf-8')

# Read the requirements
def read_requirements(filename):
    """Read requirements from a file"""
    req_file = HERE / filename
    if req_file.exists():
        return [line for line in req_file.read_text().strip().split('\n')
                if line and not line.startswith('#')]
    return []

setup(
    name="comicpanels",
    version="1.0.0",
    description="Geometric panel segmentation for comic and manga pages",
    long_description=README,
    long_description_content_type="text/markdown",
    author="comicpanels Contributors",
    license="MIT",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Multimedia :: Graphics",
        "Topic :: Scientific/Engineering :: Image Processing",
    ],
    keywords="comics manga panel segmentation canny reading order",

    # Package structure
    packages=find_packages(exclude=["tests", "tests.*"]),

    # Requirements
    python_requires=">=3.9",
    install_requires=read_requirements("requirements.txt"),
    extras_require={
        "dev": [
            "pytest>=6.0",
            "pytest-cov",
            "black",
            "flake8",
            "mypy",
        ],
    },

    # Entry points
    entry_points={
        "console_scripts": [
            "comicpanels=comicpanels.__main__:main",
        ],
    },
)
