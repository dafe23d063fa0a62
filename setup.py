"""
Setup file.
"""

import os

from setuptools import find_packages, setup

URL = "https://github.com/levython/lvbuild"
KEYWORDS = "levython release build packaging compiler toolchain installer 7zip openssl"
HERE = os.path.dirname(os.path.abspath(__file__))


def read_version() -> str:
    with open(os.path.join(HERE, "src", "lvbuild", "__init__.py"), encoding="utf-8") as f:
        for line in f:
            if line.startswith("__version__"):
                return line.split("=")[1].strip().strip('"')
    raise RuntimeError("Unable to find __version__")


if __name__ == "__main__":
    setup(
        name="lvbuild",
        version=read_version(),
        description="Builds and packages Levython releases for x86, x64 and arm64",
        maintainer="Levython Developers",
        keywords=KEYWORDS,
        url=URL,
        package_dir={"": "src"},
        packages=find_packages(where="src"),
        python_requires=">=3.9",
        install_requires=[
            "psutil>=5.9",
            "tqdm>=4.60",
        ],
        extras_require={
            "test": ["pytest>=7.0"],
        },
        entry_points={
            "console_scripts": [
                "lvbuild=lvbuild.cli:main",
            ],
        },
        include_package_data=True)
