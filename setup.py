"""Package setup for SME Tax Engine."""

from setuptools import setup, find_packages

setup(
    name="sme-tax-engine",
    version="1.0.0",
    author="Taofik Bishi",
    description="Bank transactions to double-entry books to Nigerian tax estimates for SMEs",
    long_description=open("README.md", encoding="utf-8").read(),
    long_description_content_type="text/markdown",
    url="https://github.com/taofikbishi/sme-tax-engine",
    packages=find_packages(exclude=["tests*"]),
    package_data={"sme_tax": ["data/rules/*.json"]},
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "rich>=13.0",
        "pandas>=2.0",
        "structlog>=24.1",
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "sme-tax=sme_tax.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Financial and Insurance Industry",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Financial :: Accounting",
    ],
    keywords="nigeria tax firs vat wht cit pit bookkeeping double-entry sme",
)
