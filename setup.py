from setuptools import setup, find_packages

setup(
    name="henrisim",
    version="0.1.0",
    description="Passive house simulator with the Henri adaptive HVAC controller",
    packages=find_packages(include=["henrisim", "henrisim.*"]),
    py_modules=["main"],
    python_requires=">=3.9",
    install_requires=[
        "numpy",
        "pandas",
        "scipy",
        "matplotlib",
    ],
    extras_require={
        "test": ["pytest"],
    },
)
