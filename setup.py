#!/usr/bin/env python3

from setuptools import find_packages, setup


def get_version():
    with open("gcloud_nodes/__init__.py", "r", encoding="utf-8") as f:
        for line in f:
            if line.startswith("__version__"):
                return line.split("=")[1].strip().strip('"')
    raise RuntimeError("Version not found")


setup(
    name="gcloud-flow-nodes",
    version=get_version(),
    description="Google Cloud IoT message hub and Cloud Storage write nodes for flow-based automation",
    license="Apache-2.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",
    install_requires=[
        "paho-mqtt>=2.0",
        "httpx>=0.24",
        "PyJWT[crypto]>=2.4",
        "google-cloud-storage>=2.0",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
    entry_points={
        "console_scripts": [
            "gcloud-nodes-run=gcloud_nodes.cli.main:main",
        ],
    },
)
