# setup.py
from setuptools import setup, find_packages

setup(
    name="viml",
    version="0.1.0",
    description="A Vim script runtime: values, variables, expressions and Ex commands",
    packages=find_packages(exclude=["tests*"]),
    python_requires=">=3.11",
    install_requires=[],
    extras_require={
        'test': ['pytest', 'hypothesis'],
    },
    zip_safe=False,
)
