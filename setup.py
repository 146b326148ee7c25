from setuptools import find_packages, setup

setup(
    name="mhlo-runtime",
    version="0.1.0",
    description="Reference runtime for element-wise, structural and random MHLO operations",
    package_dir={"": "src"},
    packages=find_packages(where="src", include=["mhlo_runtime", "mhlo_runtime.*"]),
    python_requires=">=3.10",
    install_requires=[
        "torch>=2.3",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
)
