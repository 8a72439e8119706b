import os.path

from setuptools import find_packages, setup


def read(fname):
    path = os.path.join(os.path.dirname(__file__), fname)
    with open(path, "r") as rfile:
        return rfile.read()


setup(
    name="restmodels",
    version="0.3.0",
    description="Generated asyncio REST resources with session auth",
    license="MIT",
    long_description=read("README.rst") + "\n\n" + read("HISTORY.rst"),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    install_requires=[],
    extras_require={
        "aiohttp": ["aiohttp>=3.8"],
        "requests": ["requests>=2.20"],
        "test": [
            "pytest>=7",
            "pytest-mock>=3",
            "pytest-asyncio>=0.21",
            "aiohttp>=3.8",
            "requests>=2.20",
        ],
    },
    keywords=[
        "api-wrapper",
        "http",
        "rest",
        "asyncio",
        "sdk",
        "loopback",
    ],
    python_requires=">=3.8",
    package_dir={"": "src"},
    packages=find_packages("src"),
)
