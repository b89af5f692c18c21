from setuptools import setup, find_packages

setup(
    name="patchview",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "pyyaml",
        "watchdog>=3.0",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "patchview=patchview.cli:main",
        ],
    },
    description="Detect and review line-level changes made by external tools.",
)
