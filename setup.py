import setuptools

setuptools.setup(
    name="opscockpit",
    description="Run predefined operational commands and stream their output live, with a durable job history",
    packages=setuptools.find_packages(include=["opscockpit", "opscockpit.*"]),
    package_data={"opscockpit": ["db/migrations/*.py", "db/migrations/versions/*.py"]},
    entry_points={
        "console_scripts": [
            "opscockpit-webserver = opscockpit.cli.webserver:main",
            "opscockpit-upgrade-db = opscockpit.cli.upgrade_db_to_latest:main",
        ]
    },
    version="0.1.0",
    install_requires=[
        # for general DB access
        "SQLAlchemy[asyncio]==2.*",
        # for the default (file) database and tests
        "aiosqlite==0.*",
        # for creating and migrating the DB
        "alembic==1.*",
        # the HTTP API and the websocket the client talks to
        "fastapi==0.*",
        "uvicorn[standard]==0.*",
        # For the config file and the JSON models
        "pydantic==2.*",
        "PyYAML==6.*",
        # For the config file
        # (for accessing XDG_CONFIG_HOME)
        "xdg==6.*",
        # command line parsing
        "typed-argument-parser==1.*",
        "structlog>=23",
    ],
    extras_require={
        "postgres": ["asyncpg==0.*"],
        "test": ["pytest>=7", "pytest-asyncio>=0.24", "httpx>=0.24"],
    },
    python_requires=">=3.10",
)
