from setuptools import setup, find_packages

setup(
    name="lensprobe",
    version="0.1.0",
    description="Integration-test harness that waits on code lenses pushed by a code-intelligence agent",
    packages=find_packages(include=["lensprobe", "lensprobe.*"]),
    python_requires=">=3.11",
    install_requires=[
        "click>=8.0",
        "pydantic>=2.0",
        "tomli>=2.0",
        "tomli-w>=1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "lensprobe=lensprobe.cli:cli",
        ],
    },
)
