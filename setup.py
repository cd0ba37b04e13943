from setuptools import setup, find_packages

setup(
    name="tic-mrf-generator",
    version="1.0.0",
    description="Transparency-in-Coverage Allowed-Amount MRF Generator",
    author="TiC MRF Team",
    packages=find_packages(exclude=["tests", "examples"]),
    py_modules=["mrf_cli"],
    install_requires=[
        "pandas>=2.0.0",
        "pydantic>=2.0.0",
    ],
    extras_require={
        "test": ["pytest>=7.0.0"],
    },
    entry_points={
        "console_scripts": [
            "mrf-cli=mrf_cli:main",
        ],
    },
    python_requires=">=3.8",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Healthcare Industry",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
