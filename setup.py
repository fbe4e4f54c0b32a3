"""
Setup script for photogallery
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text() if readme_path.exists() else ""

setup(
    name="photogallery",
    version="0.1.0",
    author="Sam",
    description="Builds the photo manifest, thumbnails and normalized sources for a static gallery site",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["photogallery", "photogallery.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Multimedia :: Graphics :: Graphics Conversion",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=[
        "Pillow>=10.0.0",
        "ExifRead>=3.0.0",
        "click>=8.1.0",
        "PyYAML>=6.0",
        "tqdm>=4.65.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
        ],
        "color": [
            "colorlog>=6.7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "photogallery=photogallery.cli:main",
        ],
    },
    include_package_data=True,
    package_data={
        "photogallery": ["config.yaml"],
    },
)
