#
# setup.py: speedtrap_tools package setup file
#
# Copyright SpeedTrap Project 2025
# All rights reserved
#
# NOTE: before making new speedtrap_tools package release,
# increment the version number in `speedtrap_tools/_version.py`
#


from setuptools import setup, find_packages
from pathlib import Path

root_path = Path(__file__).resolve().parent

# get version
exec(open(root_path / "speedtrap_tools/_version.py").read())

# load README.md
readme = open(root_path / "README.md", encoding="utf-8").read()

setup(
    name="speedtrap_tools",
    version=__version__,  # noqa
    description="Vehicle speed estimation from a fixed camera",
    author="SpeedTrap Project",
    license="MIT",
    long_description=readme,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["speedtrap_tools", "speedtrap_tools.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
    ],
    entry_points={
        "console_scripts": [
            "speedtrap_tools = speedtrap_tools:_command_entrypoint",
        ]
    },
    install_requires=[
        line.strip()
        for line in open(root_path / "requirements.txt")
        if line.strip() and not line.startswith("#")
    ],
    python_requires=">=3.8",
    # extras
    extras_require={
        # linters for CI/CD
        "linting": [
            "black",
            "mypy",
            "flake8",
            "pre-commit",
            "types-PyYAML",
        ],
        # testing for CI/CD
        "testing": ["pytest", "coverage"],
        # building for CI/CD
        "build": ["build"],
        # snapshot uploads to object storage
        "storage": ["minio"],
        # external notifications
        "notifications": ["apprise"],
        # contrib refinement trackers (KCF, CSRT, MOSSE)
        "contrib": ["opencv-contrib-python"],
    },
    include_package_data=True,
)
