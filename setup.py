import os
from setuptools import setup, find_packages

SETUP_DIR = os.path.dirname(os.path.realpath(__file__))
README_PATH = os.path.join(SETUP_DIR, "README.md")

with open(README_PATH, "r") as readme:
    README = readme.read()

setup(
    name="repo-depends",
    description="Dependency reports across a directory of .NET git repositories",
    long_description=README,
    long_description_content_type="text/markdown",
    license="LGPL-3.0-or-later",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages("src", exclude=["test"]),
    python_requires=">=3.11",
    install_requires=[
        "networkx>=2.4",
        "platformdirs>=3.0",
        "pydantic>=2.0",
        "pydantic-settings>=2.7",
        "rich>=13.0",
        "semantic_version>=2.8.5",
        "tqdm>=4.48.0",
        # Indirect dependencies for which we pin a minimum version to mitigate vulnerabilities:
        "requests>=2.20.0",  # CVE-2018-18074
        "urllib3>=1.26.5",  # CVE-2021-33503
    ],
    extras_require={
        "dev": ["flake8", "pytest", "twine", "mypy>=0.812", "types-setuptools", "types-requests"]
    },
    entry_points={
        "console_scripts": [
            "repo-depends = repo_depends._cli:main"
        ]
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: GNU Lesser General Public License v3 or later (LGPLv3+)",
        "Programming Language :: Python :: 3 :: Only",
        "Topic :: Software Development :: Build Tools",
        "Topic :: Utilities"
    ]
)
