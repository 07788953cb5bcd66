#!/usr/bin/env python
from setuptools import setup, find_packages

setup(
    name="margpipe",                                  # PyPI/distribution name
    version="0.1.0",
    description="Post-processing toolkit for posterior marginal distributions",
    long_description=open("README.md", encoding="utf-8").read(),
    long_description_content_type="text/markdown",

    # finds margpipe/ and its subpackages,
    # but excludes tests, examples, docs, etc.
    packages=find_packages(exclude=["tests*", "examples*", "docs*"]),

    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.22",
        "scipy>=1.9",
        "pandas>=1.5",
        "matplotlib>=3.5",
        "prefect>=3.0",
    ],
    extras_require={
        "dev": [
            "pytest",
            "black",
            "flake8",
        ],
    },

    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],

    include_package_data=False,
)
