from setuptools import setup

with open("README.md", "r", encoding="utf-8") as fp:
    long_description = fp.read()

setup(
    name="launchcraft",
    version="0.3.0",
    description="Launchcraft is a module that provides both an API to install and launch Minecraft versions with "
                "verified downloads, and an executable script to run the Launchcraft CLI.",
    author="launchcraft contributors",
    packages=["launchcraft", "launchcraft.cli"],
    url="https://github.com/launchcraft/launchcraft",
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="GPL-3.0",
    python_requires=">=3.8",
    install_requires=["certifi"],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": ["launchcraft = launchcraft.cli:main"],
    },
)
