from setuptools import setup, find_packages

setup(
    name="diff_reviewer",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "requests",
        "pyyaml",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "diff-reviewer=diff_reviewer.cli:main",
        ],
    },
    description="Anchors LLM code-review comments to exact unified-diff positions.",
)
