import os
from codecs import open

from setuptools import find_packages, setup

INSTALL_REQUIRES = (
    "click>=8.1",
    "elex-solver>=2.1.1",
    "cvxpy>=1.4",
    "numpy>=1.26",
    "pandas>=2.2",
    "boto3>=1.34",
    "python-dotenv>=1.0",
)

TESTS_REQUIRE = ("pytest>=8.0",)

THIS_FILE_DIR = os.path.dirname(__file__)

LONG_DESCRIPTION = ""
# Get the long description from the README file
with open(os.path.join(THIS_FILE_DIR, "README.md"), encoding="utf-8") as f:
    LONG_DESCRIPTION = f.read()

# The full version, including alpha/beta/rc tags
RELEASE = "0.1.0"
# The short X.Y version
VERSION = ".".join(RELEASE.split(".")[:2])

PROJECT = "elex-conformal"
AUTHOR = "The Wapo Newsroom Engineering Team"
COPYRIGHT = "2024, {}".format(AUTHOR)


setup(
    name=PROJECT,
    version=RELEASE,
    classifiers=[
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
    description="Conformal prediction intervals for live election night vote estimates",
    long_description=LONG_DESCRIPTION,
    long_description_content_type="text/markdown",
    license="MIT",
    packages=find_packages("src", exclude=["docs", "tests"]),
    package_dir={"": "src"},
    include_package_data=True,
    zip_safe=False,
    install_requires=INSTALL_REQUIRES,
    extras_require={"test": TESTS_REQUIRE},
    command_options={
        "build_sphinx": {
            "project": ("setup.py", PROJECT),
            "version": ("setup.py", VERSION),
            "release": ("setup.py", RELEASE),
        }
    },
    entry_points="""
        [console_scripts]
        elexconformal=elexconformal.cli:cli
    """,
)
