"""Setup script for the OnTrack Connect fetch layer."""

from setuptools import setup, find_namespace_packages

setup(
    name="ontrack-connect",
    version="1.0.0",
    description="Resilient, cache-first fetch layer for the OnTrack platform API",
    python_requires=">=3.11",
    packages=find_namespace_packages(include=["ontrack", "ontrack.*"]),
    py_modules=["main"],
    install_requires=[
        "httpx>=0.27",
        "anyio>=4.0",
        "asyncer>=0.0.8",
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "python-dotenv>=1.0",
        "python-jose>=3.3",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "respx>=0.21",
        ],
    },
)
