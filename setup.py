from setuptools import setup, find_packages

setup(
    name="datagrid",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"datagrid": ["services/*.yaml"]},
    python_requires=">=3.9",
    install_requires=[
        "fastapi",
        "uvicorn",
        "sqlalchemy[asyncio]>=2.0",
        "asyncpg",
        "pydantic>=2",
        "httpx",
        "openai",
        "anthropic",
        "mistralai>=1.2,<2",
        "python-dotenv",
        "pyyaml"
    ],
    extras_require={
        "import": ["pandas"],
        "test": [
            "pytest",
            "pytest-asyncio",
            "aiosqlite",
            "pandas"
        ],
    },
)
