"""
Setup file.
"""

import os

from setuptools import find_packages, setup

URL = "https://github.com/ctxbuild/ctxbuild"
KEYWORDS = "embedded cmsis csolution build orchestration toolchain firmware cmake ninja"
HERE = os.path.dirname(os.path.abspath(__file__))


if __name__ == "__main__":
    setup(
        name="ctxbuild",
        version="0.1.0",
        description="Build orchestration front end for embedded solutions",
        keywords=KEYWORDS,
        url=URL,
        package_dir={"": "src"},
        packages=find_packages(where="src"),
        python_requires=">=3.9",
        install_requires=[
            "PyYAML>=6.0",
            "psutil>=5.9",
            "tqdm>=4.64",
        ],
        extras_require={
            "test": [
                "pytest>=7.0",
            ],
        },
        entry_points={
            "console_scripts": [
                "ctxbuild=ctxbuild.cli:main",
            ],
        },
        include_package_data=True)
