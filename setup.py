from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="clusterkit",
    version="0.1.0",
    author="Your Name",
    author_email="your.email@example.com",
    description="Dimensionality reduction and clustering with validation and actionable errors",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    classifiers=[
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Topic :: Scientific/Engineering",
    ],
    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.24",
        "scikit-learn>=1.5",  # TSNE max_iter, cluster.HDBSCAN
        "umap-learn>=0.5",
        "joblib>=1.2",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "ann": [
            "hnswlib>=0.8.0",
        ],
        "test": [
            "pytest>=7.0.0",
        ],
        "dev": [
            "hnswlib>=0.8.0",
            "pytest>=7.0.0",
            "black>=22.0.0",
            "flake8>=5.0.0",
        ],
    },
)
