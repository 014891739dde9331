"""
SPDX-License-Identifier: Apache-2.0
"""

import setuptools

if __name__ == "__main__":
    setuptools.setup(
        name="abilities",
        version="0.1.0",
        description="Rule-based authorization with allow/deny rules, conditions and resource loading",
        license="Apache-2.0",
        python_requires=">=3.9",
        packages=setuptools.find_packages(include=["abilities", "abilities.*"]),
        install_requires=[
            "SQLAlchemy>=2.0",
            "tornado>=6.3",
        ],
        extras_require={
            "test": ["pytest"],
        },
    )
