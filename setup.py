#!/usr/bin/python3
# Setup file for libellus
# Copyright (C) 2026 The Libellus developers
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later

from setuptools import setup

tests_require = ["pytest"]

setup(
    name="libellus",
    version="0.1.0",
    description="Git-compatible content-addressed file store",
    license="Apache-2.0 OR GPL-2.0-or-later",
    packages=["libellus"],
    package_data={"": ["py.typed"]},
    python_requires=">=3.9",
    install_requires=[],
    extras_require={"test": tests_require},
    entry_points={"console_scripts": ["libellus=libellus.cli:_main"]},
    classifiers=[
        "Development Status :: 3 - Alpha",
        "License :: OSI Approved :: Apache Software License",
        "License :: OSI Approved :: GNU General Public License v2 or later (GPLv2+)",
        "Programming Language :: Python :: 3",
        "Operating System :: POSIX",
        "Topic :: Software Development :: Version Control",
    ],
)
