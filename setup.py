import os
from setuptools import setup


###################################################################

NAME = "BayesHypervolume"
KEYWORDS = ["ecology", "morphospace", "Bayesian statistics", "hypervolume"]
CLASSIFIERS = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Natural Language :: English",
    "License :: OSI Approved :: MIT License",
    "Operating System :: OS Independent",
    "Programming Language :: Python",
    "Programming Language :: Python :: 3",
    "Topic :: Scientific/Engineering :: Bio-Informatics",
]
INSTALL_REQUIRES = [  # Required packages to install BayesHypervolume
    "astropy",  # Reading FITS tables
    "matplotlib",
    "numpy",
    "pandas",
    "scipy",
]

###################################################################

HERE = os.path.abspath(os.path.dirname(__file__))
VERSION_FILE = os.path.join(HERE, "src", "BayesHypervolume", "_version.py")
__version__ = None  # Value replaced on next line; this keeps linter happy
exec(open(VERSION_FILE).read())  # Defines __version__
README_FILE = os.path.join(HERE, "README.txt")
LONG_DESCRIPTION = open(README_FILE).read()


if __name__ == "__main__":
    setup(
        name=NAME,
        description="Bayesian estimation of multivariate hypervolumes and "
                    "inclusion testing of new observations",
        license="MIT",
        version=__version__,
        keywords=KEYWORDS,
        long_description=LONG_DESCRIPTION,
        packages=["BayesHypervolume"],
        package_dir={"": "src"},
        package_data={"BayesHypervolume": ["docs/*", "tests/*.py"]},
        include_package_data=True,
        zip_safe=False,
        classifiers=CLASSIFIERS,
        install_requires=INSTALL_REQUIRES,
        python_requires=">=3.6",
    )
