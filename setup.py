from setuptools import setup, find_packages

setup(
    name="mandark",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "requests",
        "pyyaml",
        # Import discovery for --include-imports
        "tree-sitter>=0.25",
        "tree-sitter-python>=0.23",
        "tree-sitter-javascript>=0.23",
        "tree-sitter-typescript>=0.23",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "mandark=mandark.cli:main",
        ],
    },
    description="Point an LLM at local files and apply its edits, verified and revertible.",
)
