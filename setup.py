"""
Setup script for Aggregate Counter
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="aggregate-counter",
    version="1.0.0",
    author="Aggregate Counter Team",
    description="Multi-resolution time-bucketed event counters with Redis storage and a Kafka sink",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["aggregate_counter", "aggregate_counter.*"]),
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: Developers",
        "Topic :: System :: Monitoring",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.10",
    install_requires=[
        "PyYAML>=6.0.1",
        "redis>=4.5.0",
    ],
    extras_require={
        "kafka": [
            "confluent-kafka>=2.2.0",
        ],
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
            "pytest-timeout>=2.1.0",
            "black>=23.7.0",
            "flake8>=6.1.0",
            "mypy>=1.5.0",
            "isort>=5.12.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "aggregate-counter=aggregate_counter.cli:main",
        ],
    },
)
