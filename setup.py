#!/usr/bin/env python
"""
Setup script for hybridrag
"""
import re
from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

# Read version from the package
version_file = (this_directory / "src" / "hybridrag" / "_version.py").read_text(encoding="utf-8")
version = re.search(r'^__version__ = "([^"]+)"', version_file, re.M).group(1)

setup(
    name="hybridrag",
    version=version,
    description="Hybrid dense + BM25 retrieval engine with reranking and gated caching",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "Topic :: Text Processing :: Indexing",
    ],
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.6.0",
        "loguru>=0.7.2",
        "pyyaml>=6.0.0",
        "numpy>=1.26.0",
        "transformers>=4.52.4",
        "aiohttp>=3.9.0",
        "torch>=2.7.1",
        "click>=8.1.0",
        "rich>=13.0.0",
        "weaviate-client>=3.26.7,<4.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.4.0",
            "pytest-asyncio>=0.23.0",
        ],
        "dev": [
            "pytest>=8.4.0",
            "pytest-asyncio>=0.23.0",
            "pytest-cov>=5.0.0",
            "mypy>=1.8.0",
            "black>=22.0.0",
            "ruff>=0.12.0",
            "types-pyyaml>=6.0.12",
        ],
    },
    entry_points={
        "console_scripts": [
            "hybridrag=hybridrag.cli:main",
        ],
    },
    include_package_data=True,
)
