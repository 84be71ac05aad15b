"""Setup configuration for mcp-scout."""

from setuptools import setup, find_packages

setup(
    name="mcp-scout",
    version="0.1.0",
    description="Discover, verify and assess remote MCP servers before connecting to them",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "rich>=14.0.0",
        "pydantic>=2.0.0",
        "httpx>=0.27.0",
        "python-dotenv>=1.0.0",
        "pytest>=8.0.0",
        "pytest-asyncio>=1.0.0"
    ],
    entry_points={
        "console_scripts": [
            "mcp-scout=mcp_scout.cli:main",
        ],
    },
    python_requires=">=3.9",
)
