from setuptools import setup, find_packages

setup(
    name="nettrans",
    version="0.1.0",
    packages=find_packages(include=["nettrans", "nettrans.*"]),
    install_requires=[
        "torch>=2.0.0",
        "pandas>=2.0.0",
        "numpy>=1.23.0",
        "tqdm>=4.65.0",
        "matplotlib>=3.7.1",
        "seaborn>=0.12.2",
        "networkx>=3.0",
        "joblib>=1.2.0",
    ],
    extras_require={
        "dev": ["pytest>=7.3.1", "jupyter>=1.0.0"],
    },
    python_requires=">=3.9",
    description="Net transition probabilities between ordered categories from cross-sectional prevalence data",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
