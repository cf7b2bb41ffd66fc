from setuptools import setup

with open("README.md", "r", encoding="utf-8") as fp:
    long_description = fp.read()

setup(
    name="nyarumc",
    version="0.1.1",
    description="nyarumc installs, updates and launches the Nyaru game client with its Fabric loader and mods, "
                "and queries the status of game servers.",
    author="Nyaru contributors",
    packages=["nyarumc", "nyarumc.cli"],
    url="https://github.com/nyaru/nyarumc",
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="GPL-3.0",
    python_requires=">=3.8",
    install_requires=["certifi"],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": ["nyarumc=nyarumc.cli:main"],
    },
)
