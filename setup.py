import os

from setuptools import find_packages, setup

README = os.path.join(os.path.dirname(__file__), "README.md")


def readme() -> str:
    with open(README, encoding="utf-8") as f:
        return f.read()


setup(
    name="rust_types_to_code",
    version="1.0.0",
    description="Generate TypeScript, Kotlin, Swift, Go, Scala and Python types from Rust type definitions",
    long_description=readme(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 4 - Beta",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Code Generators",
        "Intended Audience :: Developers",
    ],
    keywords="rust serde typeshare code generation typescript kotlin swift go scala pydantic",
    license="MIT",
    packages=find_packages(),
    python_requires=">=3.11",
    install_requires=[
        "click>=8.0.0",
        "jinja2>=3.0.0",
        "structlog>=24.1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "pydantic>=2.5.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "pydantic>=2.5.0",
            "black>=23.0.0",
            "ruff>=0.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "rust_types_to_code=rust_types_to_code.rust_types_to_code:rust_types_to_code",
        ],
    },
    include_package_data=True,
    package_data={
        "rust_types_to_code": ["templates/**/*.jinja2"],
    },
    zip_safe=False,
)
