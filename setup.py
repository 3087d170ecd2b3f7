from setuptools import setup, find_packages

setup(
    name="seo_scanner",
    version="1.0.0",
    packages=find_packages(where=".", exclude=["tests", "tests.*"]),
    package_dir={"": "."},
    install_requires=[
        "fastapi",
        "uvicorn",
        "python-dotenv",
        "httpx",
        "parsel",
        "pydantic>=2",
        "textstat",
        "openai>=1.0",
        "reportlab"
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio"
        ]
    }
)
