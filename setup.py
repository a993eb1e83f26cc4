#!/usr/bin/env python3

from setuptools import setup, find_packages

setup(
    name="pump_signals",
    version="1.0.0",
    description="Multi-exchange crypto pump detection and trading signal pipeline",
    author="Pump Signals",
    python_requires=">=3.10",
    packages=find_packages(include=["pump_signals", "pump_signals.*"]),
    install_requires=[
        "numpy>=1.21.5",
        "aiohttp>=3.12.13",
        "python-dotenv>=1.1.0",
        "redis>=5.0.1",
        "psycopg2-binary>=2.9.9",
    ],
    extras_require={
        'test': [
            "pytest>=7.4",
        ],
    },
    entry_points={
        'console_scripts': [
            'pump-signals=pump_signals.start:run',
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Financial and Insurance Industry",
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Office/Business :: Financial :: Investment",
    ],
)
