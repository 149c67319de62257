from setuptools import setup, find_packages

setup(
    name="crdeploy",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "pydantic>=2.0",
        "pyyaml>=6.0",
        "click>=8.0",
        "tenacity>=8.0",
        "python-dotenv>=1.0",
        "jinja2>=3.0",
        "google-auth>=2.20",
        "requests>=2.28",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "crdeploy=crdeploy.CLI.main:main",
        ],
    },
)
