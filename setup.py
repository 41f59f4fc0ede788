"""
Setup script for climagen package.

This package implements variance-exploding score-based diffusion models for
ocean and climate simulation fields: denoising score matching training and
reverse-time Euler-Maruyama sampling.
"""

from setuptools import setup, find_packages

setup(
    name="climagen",
    version="0.1.0",
    description="Score-Based Generative Models for Ocean and Climate Fields",
    long_description=open("README.md").read() if __name__ == "__main__" else "",
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "Topic :: Scientific/Engineering :: Atmospheric Science",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.11",
    install_requires=[
        "torch>=2.0.0",
        "numpy>=1.24.0",
        "matplotlib>=3.7.0",
        "seaborn>=0.12.0",
        "tqdm>=4.65.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.3.0",
            "pytest-cov>=4.0.0",
            "black>=23.3.0",
            "flake8>=6.0.0",
            "mypy>=1.3.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "climagen-train=climagen.workflows:train_main",
            "climagen-sample=climagen.workflows:sample_main",
            "climagen-cyclegan=climagen.workflows:cyclegan_main",
        ],
    },
)
