from setuptools import setup, find_packages

setup(
    name="american_bond_engine",
    version="1.0.0",
    description="Schedule, valuation and yield engine for inflation-indexed American (bullet) bonds",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy",
        "pandas<3",
        "scipy",
        "PyYAML",
    ],
    extras_require={
        "test": ["pytest"],
    },
    python_requires=">=3.8",
)
