# setup.py
from setuptools import setup, find_packages

setup(
    name="ithbat",
    version="0.1.0",
    description="Trusted-source retrieval and claim verification for Islamic knowledge",
    packages=find_packages(exclude=("tests", "tests.*")),
    package_data={"ithbat": ["report/templates/*.j2"]},
    install_requires=[
        "aiohttp>=3.9",
        "beautifulsoup4>=4.12",
        "pydantic>=2.5",
        "PyYAML>=6.0",
        "click>=8.2",
        "Jinja2>=3.1",
    ],
    extras_require={
        "browser": ["playwright>=1.40"],
        "test": ["pytest>=7.4", "pytest-asyncio>=0.23"],
    },
    entry_points={"console_scripts": ["ithbat=ithbat.cli:cli"]},
    python_requires=">=3.11",
)
