"""Setup configuration for the ColorGG moderation bot."""

from setuptools import setup, find_packages

setup(
    name="colorgg",
    version="0.0.1",
    description="A Discord bot for moderation using AI, with human-reviewed ban requests",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "py-cord>=2.6",
        "openai>=1.40",
        "PyYAML>=6.0",
        "aiosqlite>=0.20",
        "prompt_toolkit>=3.0",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "colorgg=colorgg.main:main",
        ],
    },
)
