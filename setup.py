from setuptools import setup, find_packages

setup(
    name="link-relay",
    version="0.1.0",
    description="LinkRelay: visit logger that serves link previews before redirecting",
    packages=find_packages(exclude=("tests", "tests.*")),
    package_data={"link_relay": ["templates/*.j2"]},
    install_requires=[
        "aiohttp>=3.9",
        "beautifulsoup4>=4.12",
        "click>=8.1",
        "Jinja2>=3.1",
        "MarkupSafe>=2.1",
        "pydantic>=2.5",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "link-relay=link_relay.cli:main",
        ],
    },
    python_requires=">=3.11",
)
