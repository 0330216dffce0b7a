#!/usr/bin/env python3
"""
Setup script for m4bmaker.
"""

from setuptools import setup, find_packages
import os

# Read the contents of your README file
this_directory = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(this_directory, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

setup(
    name="m4bmaker",
    version="1.0.0",
    author="m4bmaker Project",
    description="Combine ordered MP3 files into a tagged M4B audiobook with live FFmpeg progress",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Sound/Audio :: Conversion",
    ],
    python_requires=">=3.8",
    install_requires=[
        # FFmpeg itself is an external tool found on PATH
        "mutagen>=1.45.0",  # MP3 durations and M4B tag read-back
        "psutil>=5.8.0",    # Terminating engine wrapper process trees
        "tqdm>=4.60.0",     # Console progress bar
    ],
    extras_require={
        "test": [
            "pytest>=6.0.0",
            "pytest-cov>=2.10.0",
        ],
        "dev": [
            "pytest>=6.0.0",
            "pytest-cov>=2.10.0",
            "black>=21.0.0",
            "isort>=5.0.0",
            "flake8>=3.8.0",
            "mypy>=0.812",
        ],
    },
    entry_points={
        "console_scripts": [
            "m4bmaker=m4bmaker.cli:main",
        ],
    },
    keywords="audiobook m4b mp3 ffmpeg conversion metadata",
)
