#!/usr/bin/env python

from setuptools import setup

setup(
    name="artifactcache",
    version="1.0.0",
    description="Self-hosted remote cache for Turborepo build artifacts",
    packages=["artifactcache", "artifactcache.api"],
    include_package_data=True,
    zip_safe=False,
    keywords=["cache", "turborepo", "build"],
    classifiers=[
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Topic :: Software Development :: Build Tools",
    ],
    python_requires=">=3.10",
    install_requires=[
        "fastapi",
        "pydantic>=2",
        "pydantic-settings",
        "python-dotenv",
        "uvicorn",
    ],
    extras_require={
        'dev': [
            'pytest',
            'anyio',
            'httpx',
            'mypy',
            'flake8',
            'pre-commit',
        ]
    },
    entry_points={
        'console_scripts': [
            'artifactcache = artifactcache.__main__:main'
        ]
    },
)
